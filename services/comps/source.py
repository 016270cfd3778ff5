"""
Comp Source Client - Sold-listing search against the 130point card comps API.

The API takes a form-encoded POST ("query=<terms>") and answers with an HTML
table fragment. Each sale is one row:

    <tr id="dRow" data-price="45.00" data-check="277455452696" data-currency="USD">
      <td>
        <a href='https://www.ebay.com/itm/277455452696?nordt=true'>2022 Bowman Chrome ... Auto</a>
        <b>Date:</b> Mon 15 Jan 2024 18:32:10 GMT
        <span>Auction</span>
      </td>
    </tr>

Design Patterns:
    - Adapter Pattern: ListingSource is the seam; the pipeline never sees HTTP
    - Parsing is a pure function (parse_comp_response) so it can be tested
      against captured HTML without a network

Example:
    source = CompSourceClient()
    listings = source.fetch_listings("Termarr Johnson", target_year=2022)
"""
import math
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Set

from bs4 import BeautifulSoup
from curl_cffi import requests, CurlError
from dateutil import parser as date_parser

from core.config import config
from core.logging import get_logger, log_execution_time
from core.models.sale import RawListing, SaleMechanism, create_raw_listing

logger = get_logger("comp-source")


# ============================================================================
# CONSTANTS
# ============================================================================

LISTING_URL_PATTERN = re.compile(r"^https://www\.ebay\.com/itm/")
DATE_LABEL_PATTERN = re.compile(r"^\s*Date:\s*$")

# Row text marker -> sale mechanism, checked in order
SALE_MECHANISM_MARKERS = [
    ("Fixed Price Sale", SaleMechanism.FIXED_PRICE),
    ("Auction", SaleMechanism.AUCTION),
    ("Best Offer", SaleMechanism.BEST_OFFER),
]

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Content-Type": "application/x-www-form-urlencoded",
}


class SourceUnavailable(Exception):
    """The comp source could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ============================================================================
# QUERY BUILDING
# ============================================================================

def build_search_query(
    player_name: str,
    target_year: Optional[int] = None,
    qualifier: Optional[str] = None,
) -> str:
    """
    Player name + optional year + product qualifier.

    Example:
        build_search_query("Termarr Johnson", 2022)
        -> "Termarr Johnson 2022 bowman chrome auto"
    """
    qualifier = qualifier if qualifier is not None else config.COMP_PRODUCT_QUALIFIER
    parts = [" ".join(player_name.split())]
    if target_year:
        parts.append(str(target_year))
    if qualifier:
        parts.append(qualifier)
    return " ".join(parts)


# ============================================================================
# RESPONSE PARSING
# ============================================================================

def parse_sale_date(text: Optional[str]) -> Optional[datetime]:
    """Parse the row's date text into a naive UTC datetime."""
    if not text or not text.strip():
        return None
    try:
        parsed = date_parser.parse(text.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def detect_sale_mechanism(row_text: str) -> SaleMechanism:
    for marker, mechanism in SALE_MECHANISM_MARKERS:
        if marker in row_text:
            return mechanism
    return SaleMechanism.UNKNOWN


def _extract_row_date(row) -> Optional[datetime]:
    label = row.find("b", string=DATE_LABEL_PATTERN)
    if label is None:
        return None
    sibling = label.next_sibling
    text = sibling if isinstance(sibling, str) else (sibling.get_text() if sibling else "")
    return parse_sale_date(text)


def parse_comp_response(html: str, currency: Optional[str] = None) -> List[RawListing]:
    """
    Parse a comp-source HTML fragment into RawListings.

    A row is kept only if it has a finite, non-negative price, an item id,
    a listing URL and the reporting currency. Rows repeating an item id
    already seen in this response are dropped.

    Args:
        html: Response body
        currency: Reporting currency to keep (defaults to config)

    Returns:
        List of RawListing in response order
    """
    currency = currency or config.COMP_REPORTING_CURRENCY
    soup = BeautifulSoup(html, "lxml")
    rows = soup.find_all("tr", id="dRow")

    listings: List[RawListing] = []
    seen_item_ids: Set[str] = set()
    duplicates = 0
    skipped = 0

    for row in rows:
        row_currency = (row.get("data-currency") or "").strip()
        item_id = (row.get("data-check") or "").strip()
        raw_price = (row.get("data-price") or "").strip()

        if not item_id or not raw_price or row_currency != currency:
            skipped += 1
            continue

        try:
            price = float(raw_price.replace(",", ""))
        except ValueError:
            skipped += 1
            continue

        if not math.isfinite(price) or price < 0:
            skipped += 1
            continue

        link = row.find("a", href=LISTING_URL_PATTERN)
        if link is None:
            skipped += 1
            continue
        title = link.get_text(" ", strip=True)
        if not title:
            skipped += 1
            continue

        if item_id in seen_item_ids:
            duplicates += 1
            continue
        seen_item_ids.add(item_id)

        row_text = row.get_text(" ", strip=True)
        listings.append(create_raw_listing(
            title=title,
            item_id=item_id,
            url=link["href"],
            price=price,
            sale_date=_extract_row_date(row) or datetime.utcnow(),
            currency=row_currency,
            sale_mechanism=detect_sale_mechanism(row_text),
        ))

    if duplicates:
        logger.warning(
            f"Dropped {duplicates} repeated listings from response",
            extra={"duplicates": duplicates},
        )
    logger.debug(
        "Parsed comp response",
        extra={"rows": len(rows), "kept": len(listings), "skipped": skipped},
    )
    return listings


# ============================================================================
# SOURCE INTERFACE AND CLIENT
# ============================================================================

class ListingSource(ABC):
    """Anything that can return RawListings for a player search."""

    @abstractmethod
    def fetch_listings(self, player_name: str, target_year: Optional[int] = None) -> List[RawListing]:
        """
        Search the source for a player's sold listings.

        Raises:
            SourceUnavailable: transport failure, timeout or non-200 status
        """
        pass


class CompSourceClient(ListingSource):
    """
    130point /cards/ client.

    One POST per call, no internal retries: a failure ends this player's run
    and the next scheduled cycle tries again.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        qualifier: Optional[str] = None,
        currency: Optional[str] = None,
        session=None,
    ):
        self.endpoint = endpoint or config.COMP_SOURCE_URL
        self.timeout = timeout or config.COMP_FETCH_TIMEOUT_SECONDS
        self.qualifier = qualifier if qualifier is not None else config.COMP_PRODUCT_QUALIFIER
        self.currency = currency or config.COMP_REPORTING_CURRENCY
        self.session = session or requests.Session()

    @log_execution_time(logger)
    def fetch_listings(self, player_name: str, target_year: Optional[int] = None) -> List[RawListing]:
        query = build_search_query(player_name, target_year, self.qualifier)
        logger.info("Querying comp source", extra={"query": query})

        try:
            response = self.session.post(
                self.endpoint,
                data={"query": query},
                headers=REQUEST_HEADERS,
                timeout=self.timeout,
                impersonate="chrome110",
            )
        except CurlError as e:
            raise SourceUnavailable(f"Comp source request failed: {e}") from e

        if response.status_code != 200:
            raise SourceUnavailable(
                f"Comp source returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        listings = parse_comp_response(response.text, currency=self.currency)
        logger.info(
            f"Found {len(listings)} listings",
            extra={"query": query, "count": len(listings)},
        )
        return listings

    def close(self):
        self.session.close()
