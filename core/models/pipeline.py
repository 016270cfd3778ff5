"""
Pipeline Result Schema - What a scrape-and-store run hands back to its caller.

Every terminal state of a run (success or failure) carries the full set of
diagnostic counts, so a caller can tell "the source had nothing" from "the
source had data but none of it was trustworthy".
"""
from typing import Optional, Dict, List
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict

from core.models.sale import VariantClass
from core.models.market import MarketSummary


class ErrorCode(str, Enum):
    """Structured failure codes for a pipeline run."""
    NO_RESULTS = "NO_RESULTS"
    NO_VALID_SALES = "NO_VALID_SALES"
    SCRAPE_ERROR = "SCRAPE_ERROR"


class YearSource(str, Enum):
    """Where the resolved release year came from."""
    PROVIDED = "provided"
    INFERRED = "inferred"


class PipelineError(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode
    message: str


class PipelineResult(BaseModel):
    """Outcome of one player's scrape-and-store run."""
    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    player_name: str
    normalized_player_name: str
    success: bool = False

    # --- What the source returned ---
    total_fetched: int = 0
    name_filtered: int = Field(0, description="Listings dropped for not naming the player")
    base_count: int = 0
    fallback_count: int = 0
    excluded_count: int = 0
    exclusion_breakdown: Dict[str, int] = Field(default_factory=dict)

    # --- Year resolution ---
    resolved_year: Optional[int] = None
    year_source: Optional[YearSource] = None

    # --- Persistence ---
    variant_class: Optional[VariantClass] = None
    inserted: int = 0
    duplicate: int = 0
    total_on_file: int = 0

    # --- Market summary (most recent N stored sales) ---
    average_price: Optional[float] = None
    median_price: Optional[float] = None
    last_sale_price: Optional[float] = None
    last_sale_date: Optional[datetime] = None
    sample_size: int = 0

    elapsed_ms: float = 0.0
    error: Optional[PipelineError] = None

    def apply_summary(self, summary: Optional[MarketSummary]):
        if summary is None:
            return
        self.average_price = summary.average_price
        self.median_price = summary.median_price
        self.last_sale_price = summary.last_sale_price
        self.last_sale_date = summary.last_sale_date
        self.sample_size = summary.sample_size

    def fail(self, code: ErrorCode, message: str) -> "PipelineResult":
        self.success = False
        self.error = PipelineError(code=code, message=message)
        return self


class PlayerTarget(BaseModel):
    """One player to refresh, with the release year known from baseline data."""
    player_name: str
    known_year: Optional[int] = None


class PlayerFailure(BaseModel):
    player_name: str
    error: str


class BatchRefreshResult(BaseModel):
    """Per-player results plus aggregate counts for one batch refresh."""
    total_players: int = 0
    refreshed: int = 0
    failed: int = 0
    skipped: int = 0
    new_sales_added: int = 0
    results: List[PipelineResult] = Field(default_factory=list)
    errors: List[PlayerFailure] = Field(default_factory=list)
    skipped_players: List[str] = Field(default_factory=list)
    elapsed_seconds: float = 0.0
    started_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def budget_exhausted(self) -> bool:
        return self.skipped > 0


class SweepFinding(BaseModel):
    """A stored sale the data-quality sweep flagged."""
    sale_id: str
    normalized_player_name: str
    title: str
    reason: str
    token: str


class SweepReport(BaseModel):
    checked: int = 0
    findings: List[SweepFinding] = Field(default_factory=list)
    by_reason: Dict[str, int] = Field(default_factory=dict)
    deleted: int = 0
    dry_run: bool = False
