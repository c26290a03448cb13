"""AWS Lambda handler for the Airbnb Cleaning Calculator."""
import json
import logging
import os
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from feeds.ical_fetcher import ICalFeedFetcher
from processor.cleaning_calculator import CleaningCalculator
from processor.models import Listing


MONTH_PATTERN = re.compile(r'^(\d{4})-(\d{1,2})$')


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def parse_target_month(value: Any) -> Tuple[int, int]:
    """
    Parse a "YYYY-MM" month selector.

    Args:
        value: Month string such as "2024-06"

    Returns:
        Tuple of (year, month)

    Raises:
        ValueError: If the value is not a valid month
    """
    match = MONTH_PATTERN.match(str(value or '').strip())
    if not match:
        raise ValueError(f"Invalid month '{value}'. Expected YYYY-MM.")

    year, month = int(match.group(1)), int(match.group(2))
    if year < 1:
        raise ValueError(f"Invalid month '{value}'. Year must be 0001 or later.")

    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{value}'. Month must be 1-12.")

    return year, month


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'body': json.dumps(body)
    }


def health_check() -> Dict[str, Any]:
    """Return the service status with the current UTC timestamp."""
    return _response(200, {
        'status': 'Server running',
        'timestamp': datetime.now(timezone.utc).isoformat()
    })


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for cleaning calculations.

    Args:
        event: Request payload with "month" (YYYY-MM) and "listings", or
            {"action": "health"} for a status check
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    # Read configuration from environment variables
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '10'))
    max_retries = int(os.environ.get('MAX_RETRIES', '1'))
    max_workers = int(os.environ.get('MAX_WORKERS', '5'))

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    event = event or {}
    if event.get('action') == 'health':
        return health_check()

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'timeout_seconds': timeout_seconds,
            'max_retries': max_retries,
            'max_workers': max_workers
        }
    )

    # Validate the request before touching any feed
    try:
        year, month = parse_target_month(event.get('month'))
    except ValueError as e:
        logger.warning(f"Rejected request: {e}")
        return _response(400, {'error': str(e)})

    raw_listings = event.get('listings')
    if not isinstance(raw_listings, list):
        logger.warning("Rejected request: listings is not a list")
        return _response(400, {
            'error': 'Invalid request. Expected array of listings.'
        })

    try:
        listings = [
            listing for listing in (Listing.from_dict(item) for item in raw_listings)
            if listing.is_configured
        ]
        if not listings:
            logger.warning("Rejected request: no configured listings")
            return _response(400, {
                'error': 'No valid listings with iCal URLs configured'
            })

        listing_ids = [listing.listing_id for listing in listings]
        if None in listing_ids or len(set(listing_ids)) != len(listing_ids):
            logger.warning("Rejected request: listing ids missing or duplicated")
            return _response(400, {
                'error': 'Each listing needs a unique id'
            })

        fetcher = ICalFeedFetcher(
            timeout=timeout_seconds,
            max_retries=max_retries,
            max_workers=max_workers
        )
        calculator = CleaningCalculator(year, month)

        logger.info(f"Fetching iCal feeds for {len(listings)} listings")
        results = fetcher.fetch_all(listings)

        logger.info(f"Calculating cleanings for {calculator.month_label}")
        report = calculator.calculate(results, listings)

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'cleanings': report.cleaning_count,
                'total_amount': report.total_amount,
                'errors': report.errors
            }
        )

        return _response(200, {
            'message': 'Calculation completed successfully',
            'report': report.to_dict(),
            'statistics': {
                'listings_requested': len(listings),
                'feeds_failed': len(report.errors or []),
                'events_fetched': sum(result.event_count for result in results),
                'cleanings': report.cleaning_count,
                'duration_seconds': round(duration, 2)
            }
        })

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Calculation failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })
