"""
ProspectComps Core Models

Exports for comp listings, stored sales, market views and pipeline results.
"""

# Listing and sale models
from core.models.sale import (
    # Enums
    SaleMechanism,
    VariantClass,
    ExclusionReason,
    # Models
    RawListing,
    ClassifiedListing,
    PersistedSale,
    # Factory functions
    create_raw_listing,
    create_persisted_sale,
    # Normalization helpers
    normalize_listing_url,
    normalize_player_name,
    extract_release_year,
)

# Market views
from core.models.market import (
    MarketSummary,
    CurrentMarket,
    PriceSnapshot,
    TrackedPlayer,
    generate_snapshot_id,
)

# Pipeline results
from core.models.pipeline import (
    ErrorCode,
    YearSource,
    PipelineError,
    PipelineResult,
    PlayerTarget,
    PlayerFailure,
    BatchRefreshResult,
    SweepFinding,
    SweepReport,
)

__all__ = [
    # Listing and sale models
    "SaleMechanism",
    "VariantClass",
    "ExclusionReason",
    "RawListing",
    "ClassifiedListing",
    "PersistedSale",
    "create_raw_listing",
    "create_persisted_sale",
    "normalize_listing_url",
    "normalize_player_name",
    "extract_release_year",
    # Market views
    "MarketSummary",
    "CurrentMarket",
    "PriceSnapshot",
    "TrackedPlayer",
    "generate_snapshot_id",
    # Pipeline results
    "ErrorCode",
    "YearSource",
    "PipelineError",
    "PipelineResult",
    "PlayerTarget",
    "PlayerFailure",
    "BatchRefreshResult",
    "SweepFinding",
    "SweepReport",
]
