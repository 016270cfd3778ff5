"""
Market Schema - Per-player market views derived from stored sales.

Architecture:
- MarketSummary: computed on every pipeline run from the N most recent sales
- CurrentMarket: the cached summary the dashboard reads (one row per player)
- PriceSnapshot: daily copy of CurrentMarket for history charts
- TrackedPlayer: baseline row naming a player and their known release year

Collections:
- current_market: CurrentMarket, keyed by normalized player name
- price_history: PriceSnapshot, keyed by {normalized_name}-{YYYY-MM-DD}
- baseline_prices: TrackedPlayer (written by the article importer)
"""
from typing import Optional
from datetime import datetime, date

from pydantic import BaseModel, Field, ConfigDict

from core.models.sale import VariantClass


class MarketSummary(BaseModel):
    """Average / median / last sale over the most recent stored sales."""
    model_config = ConfigDict(use_enum_values=True)

    average_price: float = Field(..., ge=0)
    median_price: float = Field(..., ge=0)
    last_sale_price: float = Field(..., ge=0)
    last_sale_date: datetime
    sample_size: int = Field(..., ge=1)
    release_year: Optional[int] = None


class CurrentMarket(BaseModel):
    """
    Cached market view for one player.

    Stored in the 'current_market' collection, upserted after each
    successful refresh.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )

    id: str = Field(..., alias="_id", description="Normalized player name")
    player_name: str
    normalized_player_name: str
    average_price: float
    median_price: float
    last_sale_price: float
    last_sale_date: datetime
    sample_size: int
    variant_class: VariantClass = VariantClass.BASE
    inferred_year: Optional[int] = None
    fetched_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict_for_db(self) -> dict:
        """Convert to dictionary for MongoDB insertion."""
        return self.model_dump(by_alias=True)


class PriceSnapshot(BaseModel):
    """
    Daily snapshot of a player's cached market view.

    Stored in the 'price_history' collection. Re-recording the same day
    overwrites that day's row.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    normalized_player_name: str
    average_price: float
    median_price: float
    last_sale_price: float
    sample_size: int
    snapshot_date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict_for_db(self) -> dict:
        """Convert to dictionary for MongoDB insertion."""
        return self.model_dump(by_alias=True)


class TrackedPlayer(BaseModel):
    """A player the refresh job should cover, with their known release year."""
    player_name: str
    normalized_player_name: str
    release_year: Optional[int] = None


def generate_snapshot_id(normalized_player_name: str, snapshot_date: date) -> str:
    """
    Format: {normalized_name}-{YYYY-MM-DD}
    Example: termarr johnson-2024-01-15
    """
    return f"{normalized_player_name}-{snapshot_date.isoformat()}"
