"""
Comp Pipeline - Scrape-and-store for one player.

Stages run in a fixed order, with no back-edges:

    FETCH -> (empty? NO_RESULTS)
          -> CLASSIFY -> NAME_FILTER -> RESOLVE_YEAR -> SELECT_VARIANT_SET
          -> (empty? NO_VALID_SALES)
          -> PERSIST -> SUMMARIZE -> SUCCESS

Any exception from an I/O stage (fetch, persistence, summary query) ends the
run with SCRAPE_ERROR. Nothing is retried here; the next scheduled cycle is
the retry.

Usage:
    with MongoConnection() as db:
        store = MongoSaleRepository(db)
        pipeline = CompPipeline(CompSourceClient(), store)
        result = pipeline.run("Termarr Johnson", target_year=2022)
        print(result.average_price, result.inserted, result.duplicate)
"""
import time
from typing import List, Optional, Tuple

from core.config import config
from core.logging import get_logger
from core.models.pipeline import ErrorCode, PipelineResult
from core.models.sale import ClassifiedListing, VariantClass, normalize_player_name
from core.repositories import SaleRepository
from services.comps.classifier import classify_all, exclusion_breakdown, filter_by_player_name
from services.comps.persistence import persist_sales
from services.comps.source import ListingSource
from services.comps.summary import summarize_market
from services.comps.year_inference import resolve_release_year

logger = get_logger("comp-pipeline")


def select_variant_set(
    listings: List[ClassifiedListing],
    release_year: Optional[int],
) -> Tuple[List[ClassifiedListing], Optional[VariantClass]]:
    """
    Pick the listings to persist.

    Preference order:
        1. base listings from the resolved year
        2. fallback listings from the resolved year
        3. with no resolved year at all: every base listing, then every
           fallback listing

    Returns:
        (listings, variant_class); ([], None) when nothing qualifies
    """
    base = [l for l in listings if l.is_base_variant]
    fallback = [l for l in listings if l.is_fallback_variant]

    if release_year is not None:
        candidates = [
            ([l for l in base if l.release_year == release_year], VariantClass.BASE),
            ([l for l in fallback if l.release_year == release_year], VariantClass.FALLBACK),
        ]
    else:
        candidates = [(base, VariantClass.BASE), (fallback, VariantClass.FALLBACK)]

    for selected, variant_class in candidates:
        if selected:
            return selected, variant_class
    return [], None


class CompPipeline:
    """
    Sequences the comp source, classifier, year inference, persistence and
    market summary for a single player.
    """

    def __init__(
        self,
        source: ListingSource,
        store: SaleRepository,
        sample_size: Optional[int] = None,
        days_back: Optional[int] = None,
    ):
        self.source = source
        self.store = store
        self.sample_size = sample_size or config.MARKET_SAMPLE_SIZE
        self.days_back = days_back if days_back is not None else config.MARKET_LOOKBACK_DAYS

    def run(self, player_name: str, target_year: Optional[int] = None) -> PipelineResult:
        started = time.perf_counter()
        player_name = " ".join(player_name.split())
        result = PipelineResult(
            player_name=player_name,
            normalized_player_name=normalize_player_name(player_name),
        )

        logger.info(
            f"Refreshing comps for {player_name}",
            extra={"player": player_name, "target_year": target_year},
        )

        try:
            self._run_stages(result, target_year)
        except Exception as e:
            logger.error(
                f"Pipeline failed for {player_name}: {e}",
                exc_info=True,
                extra={"player": player_name},
            )
            result.fail(ErrorCode.SCRAPE_ERROR, str(e) or e.__class__.__name__)

        result.elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        self._log_outcome(result)
        return result

    def _run_stages(self, result: PipelineResult, target_year: Optional[int]):
        player_name = result.player_name

        # FETCH
        raw_listings = self.source.fetch_listings(player_name, target_year)
        result.total_fetched = len(raw_listings)
        if not raw_listings:
            result.fail(ErrorCode.NO_RESULTS, f"No sales found for {player_name}")
            return

        # CLASSIFY + NAME_FILTER
        classified = classify_all(raw_listings)
        named = filter_by_player_name(classified, player_name)
        result.name_filtered = len(classified) - len(named)
        result.base_count = sum(1 for l in named if l.is_base_variant)
        result.fallback_count = sum(1 for l in named if l.is_fallback_variant)
        result.excluded_count = sum(1 for l in named if l.is_excluded)
        result.exclusion_breakdown = exclusion_breakdown(named)

        logger.info(
            f"Classified {len(named)} listings: {result.base_count} base, "
            f"{result.fallback_count} fallback, {result.excluded_count} excluded",
            extra={
                "player": player_name,
                "total_fetched": result.total_fetched,
                "name_filtered": result.name_filtered,
                "exclusions": result.exclusion_breakdown,
            },
        )

        # RESOLVE_YEAR
        year, year_source = resolve_release_year(named, target_year)
        result.resolved_year = year
        result.year_source = year_source

        # SELECT_VARIANT_SET
        selected, variant_class = select_variant_set(named, year)
        if not selected:
            result.fail(
                ErrorCode.NO_VALID_SALES,
                f"No admissible sales for {player_name}"
                + (f" in {year}" if year else ""),
            )
            return
        result.variant_class = variant_class

        # PERSIST
        outcome = persist_sales(self.store, player_name, selected, variant_class)
        result.inserted = outcome.inserted
        result.duplicate = outcome.duplicate
        result.total_on_file = self.store.count_by_player(result.normalized_player_name, year)

        # SUMMARIZE
        summary = summarize_market(
            self.store, player_name, year, self.sample_size, days_back=self.days_back
        )
        if summary is None:
            result.fail(ErrorCode.NO_VALID_SALES, f"No stored sales for {player_name}")
            return
        result.apply_summary(summary)
        result.success = True

    def _log_outcome(self, result: PipelineResult):
        if result.success:
            logger.info(
                f"{result.player_name}: avg ${result.average_price:.2f}, "
                f"median ${result.median_price:.2f} (n={result.sample_size}) "
                f"[{result.resolved_year or '?'}] {result.variant_class}",
                extra={
                    "player": result.player_name,
                    "inserted": result.inserted,
                    "duplicate": result.duplicate,
                    "elapsed_ms": result.elapsed_ms,
                },
            )
        else:
            logger.warning(
                f"{result.player_name}: {result.error.code} - {result.error.message}",
                extra={
                    "player": result.player_name,
                    "error_code": result.error.code,
                    "total_fetched": result.total_fetched,
                    "elapsed_ms": result.elapsed_ms,
                },
            )


def scrape_and_store_player(
    source: ListingSource,
    store: SaleRepository,
    player_name: str,
    target_year: Optional[int] = None,
    sample_size: Optional[int] = None,
    days_back: Optional[int] = None,
) -> PipelineResult:
    """One-shot convenience wrapper around CompPipeline.run."""
    return CompPipeline(source, store, sample_size, days_back).run(player_name, target_year)
