"""
Comp Ingestion Pipeline

Fetches sold comps for a prospect, keeps only trustworthy first-year base
autographs (or the sanctioned refractor /499 fallback), stores each listing
once, and summarizes the player's recent market.

Architecture:
    - ListingSource / CompSourceClient: comp-source search and HTML parsing
    - rules + classifier: ordered exclusion table and the name filter
    - year_inference: earliest-year resolution
    - persistence + summary: insert-if-absent and average/median/last sale
    - CompPipeline: one player end to end
    - refresh_players: budgeted sequential batch
    - sweep_invalid_sales: re-check stored sales against current rules

Usage:
    from services.comps import CompPipeline, CompSourceClient

    pipeline = CompPipeline(CompSourceClient(), store)
    result = pipeline.run("Termarr Johnson")
"""

from services.comps.source import (
    ListingSource,
    CompSourceClient,
    SourceUnavailable,
    build_search_query,
    parse_comp_response,
)
from services.comps.classifier import classify, classify_all, filter_by_player_name
from services.comps.year_inference import infer_release_year, resolve_release_year
from services.comps.persistence import PersistOutcome, persist_sales
from services.comps.summary import compute_market_summary, summarize_market, to_current_market
from services.comps.pipeline import CompPipeline, select_variant_set, scrape_and_store_player
from services.comps.batch import refresh_players
from services.comps.sweep import evaluate_title_for_sweep, sweep_invalid_sales

__all__ = [
    # Source
    "ListingSource",
    "CompSourceClient",
    "SourceUnavailable",
    "build_search_query",
    "parse_comp_response",
    # Classification
    "classify",
    "classify_all",
    "filter_by_player_name",
    "infer_release_year",
    "resolve_release_year",
    # Storage and summary
    "PersistOutcome",
    "persist_sales",
    "compute_market_summary",
    "summarize_market",
    "to_current_market",
    # Orchestration
    "CompPipeline",
    "select_variant_set",
    "scrape_and_store_player",
    "refresh_players",
    "sweep_invalid_sales",
    "evaluate_title_for_sweep",
]
