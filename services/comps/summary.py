"""
Market Summary Aggregator - Average / median / last sale over recent sales.
"""
from statistics import median
from typing import Optional, Sequence

from core.models.market import CurrentMarket, MarketSummary
from core.models.pipeline import PipelineResult
from core.models.sale import PersistedSale, VariantClass, normalize_player_name
from core.repositories import SaleRepository


def compute_market_summary(
    sales: Sequence[PersistedSale],
    release_year: Optional[int] = None,
) -> Optional[MarketSummary]:
    """
    Summarize sales ordered newest first.

    Returns:
        MarketSummary, or None when there are no sales ("no market data yet"
        is not the same as a zero price)
    """
    if not sales:
        return None

    prices = [sale.price for sale in sales]
    latest = max(sales, key=lambda sale: sale.sale_date)

    return MarketSummary(
        average_price=round(sum(prices) / len(prices), 2),
        median_price=round(median(prices), 2),
        last_sale_price=latest.price,
        last_sale_date=latest.sale_date,
        sample_size=len(prices),
        release_year=release_year,
    )


def summarize_market(
    store: SaleRepository,
    player_name: str,
    release_year: Optional[int] = None,
    sample_size: int = 5,
    days_back: Optional[int] = None,
) -> Optional[MarketSummary]:
    """
    Summarize the player's N most recent stored sales for the year.

    With days_back set, sales older than that many days are left out even
    when fewer than N remain.
    """
    sales = store.query_recent_by_player(
        normalize_player_name(player_name),
        release_year=release_year,
        limit=sample_size,
        days_back=days_back,
    )
    return compute_market_summary(sales, release_year)


def to_current_market(result: PipelineResult) -> Optional[CurrentMarket]:
    """Cached market row for a successful pipeline run, or None."""
    if not result.success or result.average_price is None or result.last_sale_date is None:
        return None

    return CurrentMarket(
        _id=result.normalized_player_name,
        player_name=result.player_name,
        normalized_player_name=result.normalized_player_name,
        average_price=result.average_price,
        median_price=result.median_price,
        last_sale_price=result.last_sale_price,
        last_sale_date=result.last_sale_date,
        sample_size=result.sample_size,
        variant_class=result.variant_class or VariantClass.BASE,
        inferred_year=result.resolved_year,
    )
