"""Parser for the subset of iCalendar produced by booking calendars."""
import logging
import re
from dataclasses import replace
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from processor.models import DEFAULT_SUMMARY, BookingEvent

logger = logging.getLogger(__name__)

BEGIN_EVENT = 'BEGIN:VEVENT'
END_EVENT = 'END:VEVENT'

DATE_PATTERN = re.compile(r'(\d{8})')
DATETIME_PATTERN = re.compile(r'(\d{8}T\d{6}Z?)')
LINE_SPLIT_PATTERN = re.compile(r'\r?\n')


class ParserState(Enum):
    """Scanner position relative to a VEVENT block."""
    OUTSIDE_EVENT = 'outside'
    INSIDE_EVENT = 'inside'


def parse_ical_date(line: str) -> Optional[date]:
    """
    Extract the calendar date from a DTSTART/DTEND line.

    Both the all-day encoding (20240603) and the date-time encoding
    (20240610T140000Z) are accepted. Only the date part is kept; time of
    day and the UTC marker are discarded without any zone conversion.

    Args:
        line: Field line such as "DTEND;VALUE=DATE:20240606"

    Returns:
        date object, or None if no valid date is encoded
    """
    match = DATETIME_PATTERN.search(line) or DATE_PATTERN.search(line)
    if not match:
        return None

    digits = match.group(1)[:8]
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:8]))
    except ValueError:
        logger.debug(f"Ignoring invalid date digits in line: {line}")
        return None


def _apply_field(event: BookingEvent, line: str) -> BookingEvent:
    """Return the event updated with the field carried by one line."""
    if line.startswith('DTSTART'):
        return replace(event, start_date=parse_ical_date(line))
    if line.startswith('DTEND'):
        return replace(event, end_date=parse_ical_date(line))
    if line.startswith('SUMMARY:'):
        return replace(event, summary=line[len('SUMMARY:'):].strip())
    if line.startswith('UID:'):
        return replace(event, uid=line[len('UID:'):].strip())
    return event


def step(
    state: ParserState,
    current: Optional[BookingEvent],
    line: str
) -> Tuple[ParserState, Optional[BookingEvent], Optional[BookingEvent]]:
    """
    Advance the scanner by one trimmed line.

    Args:
        state: Current scanner state
        current: Event accumulated so far (None outside an event)
        line: Trimmed feed line

    Returns:
        Tuple of (next state, next accumulator, finished event or None)
    """
    if line == BEGIN_EVENT:
        return ParserState.INSIDE_EVENT, BookingEvent(summary=''), None

    if state is ParserState.OUTSIDE_EVENT:
        return state, None, None

    if line == END_EVENT:
        if current.is_complete:
            finished = replace(current, summary=current.summary or DEFAULT_SUMMARY)
            return ParserState.OUTSIDE_EVENT, None, finished
        return ParserState.OUTSIDE_EVENT, None, None

    return state, _apply_field(current, line), None


class FeedParser:
    """Two-state scanner turning feed text into booking events."""

    def parse_lines(self, lines: Iterable[str]) -> List[BookingEvent]:
        """
        Parse already split feed lines.

        Args:
            lines: Feed lines, trimmed or not

        Returns:
            List of complete BookingEvent objects in feed order
        """
        events = []
        state = ParserState.OUTSIDE_EVENT
        current = None
        begun = 0

        for raw_line in lines:
            line = raw_line.strip()
            if line == BEGIN_EVENT:
                begun += 1
            state, current, finished = step(state, current, line)
            if finished is not None:
                events.append(finished)

        dropped = begun - len(events)
        if dropped:
            logger.debug(f"Dropped {dropped} incomplete events")

        return events

    def parse(self, ical_text: str) -> List[BookingEvent]:
        """
        Parse a full feed body.

        Args:
            ical_text: Raw iCalendar text

        Returns:
            List of complete BookingEvent objects in feed order
        """
        return self.parse_lines(LINE_SPLIT_PATTERN.split(ical_text))


def parse_feed(ical_text: str) -> List[BookingEvent]:
    """Parse a feed body into booking events."""
    return FeedParser().parse(ical_text)
