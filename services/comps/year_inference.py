"""
Year Inference - Pins a player's results to their first Bowman Chrome year.

A prospect's first-print autograph is by definition the earliest year it
appears, so the minimum year wins, never the most frequent one. Base
listings are consulted first; fallback listings only when no base listing
carries a year.
"""
from typing import Iterable, Optional, Tuple

from core.models.pipeline import YearSource
from core.models.sale import ClassifiedListing


def infer_release_year(listings: Iterable[ClassifiedListing]) -> Optional[int]:
    """
    Earliest release year among base listings, else among fallback listings.

    Returns:
        The inferred year, or None if no admissible listing has one
    """
    listings = list(listings)

    base_years = [l.release_year for l in listings if l.is_base_variant and l.release_year]
    if base_years:
        return min(base_years)

    fallback_years = [l.release_year for l in listings if l.is_fallback_variant and l.release_year]
    if fallback_years:
        return min(fallback_years)

    return None


def resolve_release_year(
    listings: Iterable[ClassifiedListing],
    known_year: Optional[int] = None,
) -> Tuple[Optional[int], Optional[YearSource]]:
    """
    Use the known year when the caller has one; otherwise infer it.

    Returns:
        (year, source) where source is None when nothing could be resolved
    """
    if known_year:
        return known_year, YearSource.PROVIDED

    year = infer_release_year(listings)
    if year is None:
        return None, None
    return year, YearSource.INFERRED
