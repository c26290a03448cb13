"""Data models for feed parsing and cleaning calculation."""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional


DEFAULT_SUMMARY = "Unnamed Booking"


@dataclass
class BookingEvent:
    """Booking parsed from a calendar feed."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    summary: str = DEFAULT_SUMMARY
    uid: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.start_date is not None and self.end_date is not None


@dataclass
class Listing:
    """Rental listing configured by the caller."""
    listing_id: Any
    name: str
    rate: float
    ical_url: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Listing":
        """
        Build a Listing from a request payload.

        Args:
            data: Dict with id, name, rate and icalUrl keys (the transport
                style listingId/listingName/url keys are accepted too)

        Returns:
            Listing object
        """
        rate = data.get('rate') or 0
        try:
            rate = float(rate)
        except (TypeError, ValueError):
            rate = 0.0

        return cls(
            listing_id=data.get('id', data.get('listingId')),
            name=str(data.get('name') or data.get('listingName') or '').strip(),
            rate=rate,
            ical_url=str(data.get('icalUrl') or data.get('url') or '').strip()
        )

    @property
    def is_configured(self) -> bool:
        """True when the listing has a feed URL, a name and a rate."""
        return bool(self.ical_url and self.name and self.rate > 0)


@dataclass
class FetchResult:
    """Outcome of fetching and parsing one listing's feed."""
    listing_id: Any
    listing_name: str
    success: bool
    events: List[BookingEvent] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def event_count(self) -> int:
        return len(self.events)


@dataclass(frozen=True)
class CleaningRecord:
    """Billable cleaning derived from one booking checkout."""
    listing_name: str
    cleaning_date: date
    guest_name: str
    amount: float
    booking_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'listingName': self.listing_name,
            'cleaningDate': self.cleaning_date.isoformat(),
            'guestName': self.guest_name,
            'amount': self.amount,
            'bookingId': self.booking_id
        }


@dataclass
class Report:
    """Cleaning report for one month."""
    cleanings: List[CleaningRecord]
    total_amount: float
    date_range: str
    month: str
    errors: Optional[List[str]] = None

    @property
    def cleaning_count(self) -> int:
        return len(self.cleanings)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the report into its JSON response shape."""
        return {
            'cleanings': [cleaning.to_dict() for cleaning in self.cleanings],
            'totalAmount': self.total_amount,
            'totalCleanings': self.cleaning_count,
            'dateRange': self.date_range,
            'month': self.month,
            'errors': self.errors
        }
