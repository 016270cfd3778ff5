"""
Sale Schema - Comp listings from the sales source and the stored sale records.

Architecture: Transient listings, append-only sales
- RawListing: one row parsed out of a comp-source response (never stored)
- ClassifiedListing: a RawListing plus its variant bucket (never stored)
- PersistedSale: the durable record, one per distinct listing URL

Collections:
- individual_sales: PersistedSale documents, unique on normalized_url

Usage:
    listing = create_raw_listing(
        title="2023 Bowman Chrome Termarr Johnson Auto",
        item_id="277455452696",
        url="https://www.ebay.com/itm/277455452696?nordt=true",
        price=45.0,
        sale_date=datetime(2024, 1, 15),
    )
    listing.release_year   # 2023
    normalize_listing_url(listing.url)   # https://www.ebay.com/itm/277455452696
"""
import re
import uuid
from typing import Optional
from datetime import datetime
from enum import Enum
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field, ConfigDict, model_validator


# ============================================================================
# ENUMS AND CONSTANTS
# ============================================================================

class SaleMechanism(str, Enum):
    """How the listing sold."""
    AUCTION = "AUCTION"
    FIXED_PRICE = "FIXED_PRICE"
    BEST_OFFER = "BEST_OFFER"
    UNKNOWN = "UNKNOWN"


class VariantClass(str, Enum):
    """Which admissible bucket a stored sale came from."""
    BASE = "base"
    FALLBACK = "fallback"


class ExclusionReason(str, Enum):
    """Why a listing was kept out of the admissible buckets."""
    GRADED = "graded"
    LOT = "lot"
    WRONG_PRODUCT = "wrong product"
    IP_AUTO = "IP auto"
    NUMBERED_PARALLEL = "numbered parallel"
    PARALLEL = "parallel"
    # Only used by the stored-data sweep
    UNCLEAR_PRICING = "unclear pricing"


# First year-like token between 2010 and 2029
RELEASE_YEAR_PATTERN = re.compile(r"\b(20[1-2][0-9])\b")


# ============================================================================
# NORMALIZATION HELPERS
# ============================================================================

def normalize_listing_url(url: str) -> str:
    """
    Strip query string and fragment so tracking parameters never create a
    second record for the same listing.

    Example:
        https://www.ebay.com/itm/277455452696?nordt=true
        -> https://www.ebay.com/itm/277455452696
    """
    url = url.strip()
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url.split("?", 1)[0].split("#", 1)[0]
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, "", ""))


def normalize_player_name(player_name: str) -> str:
    """Lowercase, trimmed, single-spaced player key."""
    return " ".join(player_name.lower().split())


def extract_release_year(title: str) -> Optional[int]:
    """Return the first 2010-2029 year token in a title, or None."""
    match = RELEASE_YEAR_PATTERN.search(title)
    if match:
        return int(match.group(1))
    return None


# ============================================================================
# TRANSIENT LISTING MODELS
# ============================================================================

class RawListing(BaseModel):
    """One sale row returned by the comp source for a query."""
    model_config = ConfigDict(use_enum_values=True)

    title: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1, description="External item identifier")
    url: str = Field(..., min_length=1, description="External listing URL")
    price: float = Field(..., ge=0, allow_inf_nan=False)
    currency: str = "USD"
    sale_date: datetime
    sale_mechanism: SaleMechanism = SaleMechanism.UNKNOWN
    release_year: Optional[int] = Field(
        None,
        description="First year-like token (2010-2029) found in the title"
    )


class ClassifiedListing(RawListing):
    """
    A RawListing with its variant bucket.

    Exactly one of these holds:
    - is_base_variant
    - is_fallback_variant
    - exclusion_reason is set
    """
    is_base_variant: bool = False
    is_fallback_variant: bool = False
    exclusion_reason: Optional[ExclusionReason] = None
    matched_rule: Optional[str] = Field(None, description="Name of the rule that decided the bucket")
    matched_token: Optional[str] = Field(None, description="Title fragment the rule matched on")

    @model_validator(mode="after")
    def _exactly_one_bucket(self) -> "ClassifiedListing":
        buckets = [self.is_base_variant, self.is_fallback_variant, self.exclusion_reason is not None]
        if sum(buckets) != 1:
            raise ValueError(
                "listing must be exactly one of base, fallback or excluded "
                f"(base={self.is_base_variant}, fallback={self.is_fallback_variant}, "
                f"reason={self.exclusion_reason})"
            )
        return self

    @property
    def is_excluded(self) -> bool:
        return self.exclusion_reason is not None

    @property
    def variant_class(self) -> Optional[VariantClass]:
        if self.is_base_variant:
            return VariantClass.BASE
        if self.is_fallback_variant:
            return VariantClass.FALLBACK
        return None


# ============================================================================
# PERSISTED SALE MODEL
# ============================================================================

class PersistedSale(BaseModel):
    """
    One stored sale. Append-only: never updated after insert.

    Stored in the 'individual_sales' collection.

    Example Document:
        {
            "_id": "5b0c5f0e-...",
            "player_name": "Termarr Johnson",
            "normalized_player_name": "termarr johnson",
            "normalized_url": "https://www.ebay.com/itm/277455452696",
            "item_id": "277455452696",
            "title": "2022 Bowman Chrome Termarr Johnson Auto",
            "price": 45.0,
            "sale_date": "2024-01-15T00:00:00",
            "sale_mechanism": "AUCTION",
            "release_year": 2022,
            "variant_class": "base",
            "ingested_at": "2024-01-16T12:00:00"
        }
    """
    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="_id")
    player_name: str
    normalized_player_name: str
    normalized_url: str = Field(..., description="Listing URL without query string; unique")
    item_id: str
    title: str
    price: float = Field(..., ge=0, allow_inf_nan=False)
    sale_date: datetime
    sale_mechanism: SaleMechanism = SaleMechanism.UNKNOWN
    release_year: Optional[int] = None
    variant_class: VariantClass = VariantClass.BASE
    ingested_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict_for_db(self) -> dict:
        """Convert to dictionary for MongoDB insertion (datetimes kept native)."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_db(cls, document: dict) -> "PersistedSale":
        return cls.model_validate(document)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_raw_listing(
    title: str,
    item_id: str,
    url: str,
    price: float,
    sale_date: datetime,
    currency: str = "USD",
    sale_mechanism: SaleMechanism = SaleMechanism.UNKNOWN,
) -> RawListing:
    """Build a RawListing, extracting the candidate release year from the title."""
    title = title.strip()
    return RawListing(
        title=title,
        item_id=item_id.strip(),
        url=url.strip(),
        price=price,
        currency=currency,
        sale_date=sale_date,
        sale_mechanism=sale_mechanism,
        release_year=extract_release_year(title),
    )


def create_persisted_sale(
    player_name: str,
    listing: RawListing,
    variant_class: VariantClass,
) -> PersistedSale:
    """Build the stored record for an admissible listing."""
    return PersistedSale(
        player_name=player_name.strip(),
        normalized_player_name=normalize_player_name(player_name),
        normalized_url=normalize_listing_url(listing.url),
        item_id=listing.item_id,
        title=listing.title,
        price=listing.price,
        sale_date=listing.sale_date,
        sale_mechanism=listing.sale_mechanism,
        release_year=listing.release_year,
        variant_class=variant_class,
    )
