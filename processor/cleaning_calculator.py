"""Cleaning calculator turning booking checkouts into billable cleanings."""
import calendar
import logging
import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from processor.models import BookingEvent, CleaningRecord, FetchResult, Listing, Report

logger = logging.getLogger(__name__)

GUEST_PREFIX_PATTERN = re.compile(r'^(Booking|Reservation|Stay)\s*-?\s*', re.IGNORECASE)


def month_window(year: int, month: int) -> Tuple[date, date]:
    """
    Get the inclusive date window of a calendar month.

    Args:
        year: Four digit year
        month: Month number (1-12)

    Returns:
        Tuple of (first day, last day)
    """
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def format_date_range(start: date, end: date) -> str:
    """Format a window as "M/D/YYYY - M/D/YYYY"."""
    return (
        f"{start.month}/{start.day}/{start.year} - "
        f"{end.month}/{end.day}/{end.year}"
    )


def events_in_window(
    events: Iterable[BookingEvent],
    start: date,
    end: date
) -> List[BookingEvent]:
    """Keep events whose checkout falls inside [start, end]."""
    return [
        event for event in events
        if event.end_date is not None and start <= event.end_date <= end
    ]


def normalize_guest_name(summary: str) -> str:
    """
    Strip a leading Booking/Reservation/Stay label from a summary.

    "BOOKING - Jane Doe", "Reservation-Jane Doe" and "Jane Doe" all
    normalize to "Jane Doe".
    """
    return GUEST_PREFIX_PATTERN.sub('', summary, count=1).strip()


def synthetic_booking_id(event: BookingEvent) -> str:
    # Two bookings with the same stay dates share this key.
    return f"{event.start_date.isoformat()}-{event.end_date.isoformat()}"


def build_cleaning_records(
    events: Iterable[BookingEvent],
    listing: Listing,
    listing_name: Optional[str] = None
) -> List[CleaningRecord]:
    """
    Convert booking events into cleaning records for one listing.

    Args:
        events: Booking events already restricted to the month window
        listing: Listing supplying the flat cleaning rate
        listing_name: Name to show on the records (defaults to listing.name)

    Returns:
        List of CleaningRecord objects in event order
    """
    name = listing_name or listing.name
    return [
        CleaningRecord(
            listing_name=name,
            cleaning_date=event.end_date,
            guest_name=normalize_guest_name(event.summary),
            amount=listing.rate,
            booking_id=event.uid or synthetic_booking_id(event)
        )
        for event in events
    ]


class CleaningCalculator:
    """Aggregator building a monthly cleaning report from fetch results."""

    def __init__(self, year: int, month: int):
        """
        Initialize the calculator for a target month.

        Args:
            year: Four digit year
            month: Month number (1-12)

        Raises:
            ValueError: If month is outside 1-12
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")

        self.year = year
        self.month = month
        self.window_start, self.window_end = month_window(year, month)

    @property
    def month_label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def cleanings_for_listing(
        self,
        result: FetchResult,
        listing: Listing
    ) -> List[CleaningRecord]:
        """Build the cleaning records one successful result contributes."""
        monthly_events = events_in_window(
            result.events, self.window_start, self.window_end
        )
        return build_cleaning_records(monthly_events, listing, result.listing_name)

    def calculate(
        self,
        results: Iterable[FetchResult],
        listings: Iterable[Listing]
    ) -> Report:
        """
        Merge per-listing fetch results into a report.

        Failed results are carried as error entries; they never stop other
        listings from being processed.

        Args:
            results: One FetchResult per requested listing
            listings: Listings the results were fetched for

        Returns:
            Report with cleanings sorted by date and the total amount
        """
        listings_by_id: Dict = {listing.listing_id: listing for listing in listings}
        all_cleanings = []
        errors = []

        for result in results:
            if not result.success:
                errors.append(f"{result.listing_name}: {result.error}")
                continue

            listing = listings_by_id.get(result.listing_id)
            if listing is None:
                logger.warning(
                    f"Skipping result for unknown listing id {result.listing_id!r}"
                )
                continue

            cleanings = self.cleanings_for_listing(result, listing)
            logger.info(
                f"{result.listing_name}: {len(cleanings)} cleanings out of "
                f"{result.event_count} events"
            )
            all_cleanings.extend(cleanings)

        if errors:
            logger.warning(f"Some iCal feeds failed to load: {errors}")

        # sorted() is stable, ties keep listing order
        all_cleanings = sorted(all_cleanings, key=lambda cleaning: cleaning.cleaning_date)
        total_amount = sum(cleaning.amount for cleaning in all_cleanings)

        return Report(
            cleanings=all_cleanings,
            total_amount=total_amount,
            date_range=format_date_range(self.window_start, self.window_end),
            month=self.month_label,
            errors=errors or None
        )
