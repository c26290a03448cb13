"""HTTP fetcher for listing iCal feeds."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List

import requests

from processor.feed_parser import FeedParser
from processor.models import FetchResult, Listing

logger = logging.getLogger(__name__)


class ICalFeedFetcher:
    """Fetcher retrieving and parsing the iCal feed of each listing."""
    
    USER_AGENT = "Cleaning-Calculator/1.0"
    
    def __init__(self, timeout: int = 10, max_retries: int = 1, max_workers: int = 5):
        """
        Initialize the feed fetcher.
        
        Args:
            timeout: HTTP request timeout in seconds (default: 10)
            max_retries: Attempts per feed before giving up (default: 1)
            max_workers: Feeds fetched concurrently (default: 5)
        """
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.max_workers = max(1, max_workers)
        self.parser = FeedParser()
    
    def fetch_all(self, listings: List[Listing]) -> List[FetchResult]:
        """
        Fetch the feeds of all listings concurrently.
        
        Args:
            listings: Listings to fetch
            
        Returns:
            One FetchResult per listing, in the same order as listings
        """
        if not listings:
            return []
        
        logger.info(f"Fetching {len(listings)} iCal feeds")
        
        workers = min(self.max_workers, len(listings))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields in submission order whatever the completion order
            results = list(executor.map(self.fetch_listing, listings))
        
        failed = sum(1 for result in results if not result.success)
        logger.info(
            f"Fetched {len(results) - failed} feeds successfully, {failed} failed"
        )
        return results
    
    def fetch_listing(self, listing: Listing) -> FetchResult:
        """
        Fetch and parse one listing's feed.
        
        Request failures are reported in the result instead of raised.
        
        Args:
            listing: Listing whose feed to fetch
            
        Returns:
            FetchResult for the listing
        """
        try:
            logger.info(f"Fetching iCal data for {listing.name}: {listing.ical_url}")
            ical_text = self.fetch_feed(listing.ical_url)
        except requests.Timeout:
            error = f"Request timed out after {self.timeout} seconds"
            logger.error(f"Error fetching iCal for {listing.name}: {error}")
            return FetchResult(
                listing_id=listing.listing_id,
                listing_name=listing.name,
                success=False,
                error=error
            )
        except requests.RequestException as e:
            logger.error(f"Error fetching iCal for {listing.name}: {e}")
            return FetchResult(
                listing_id=listing.listing_id,
                listing_name=listing.name,
                success=False,
                error=str(e)
            )
        
        events = self.parser.parse(ical_text)
        logger.info(f"Successfully fetched {len(events)} events for {listing.name}")
        
        return FetchResult(
            listing_id=listing.listing_id,
            listing_name=listing.name,
            success=True,
            events=events
        )
    
    def fetch_feed(self, url: str) -> str:
        """
        Fetch a feed body with retry logic.
        
        Args:
            url: iCal feed URL
            
        Returns:
            Feed text
            
        Raises:
            requests.RequestException: If all retry attempts fail
        """
        base_delay = 1  # seconds
        
        for attempt in range(self.max_retries):
            try:
                response = requests.get(
                    url,
                    headers={'User-Agent': self.USER_AGENT},
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.text
                
            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    raise
