"""
Listing Classifier - Buckets comp listings into base / fallback / excluded.

classify() is a single pass over the ordered rule table in rules.py; it is
total and never raises. The player-name filter is separate: it removes
listings that do not name the player before any bucket counts are taken,
because the comp source matches search terms loosely.

Example:
    classified = classify(listing)
    if classified.is_base_variant:
        ...
    elif classified.is_fallback_variant:
        ...
    else:
        print(classified.exclusion_reason, classified.matched_token)
"""
import re
from collections import Counter
from typing import Dict, Iterable, List, Sequence

from core.logging import get_logger
from core.models.sale import ClassifiedListing, RawListing
from services.comps.rules import CLASSIFICATION_RULES, ClassificationRule

logger = get_logger("comp-classifier")

NAME_SPLIT_PATTERN = re.compile(r"[\s-]+")


def classify(
    listing: RawListing,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> ClassifiedListing:
    """
    Classify one listing by the first matching rule.

    Args:
        listing: Raw listing from the comp source
        rules: Ordered rule table, ending in a default rule

    Returns:
        ClassifiedListing in exactly one bucket
    """
    title = listing.title.lower()
    fields = listing.model_dump()

    for rule in rules:
        token = rule.match(title)
        if token is None:
            continue

        if rule.reason is None:
            return ClassifiedListing(
                **fields,
                is_base_variant=True,
                matched_rule=rule.name,
            )

        if rule.fallback is not None and rule.fallback.matches(title):
            return ClassifiedListing(
                **fields,
                is_fallback_variant=True,
                matched_rule=rule.name,
                matched_token=token,
            )

        return ClassifiedListing(
            **fields,
            exclusion_reason=rule.reason,
            matched_rule=rule.name,
            matched_token=token,
        )

    # Rule table without a default: stay permissive
    return ClassifiedListing(**fields, is_base_variant=True)


def classify_all(listings: Iterable[RawListing]) -> List[ClassifiedListing]:
    return [classify(listing) for listing in listings]


def player_name_tokens(player_name: str) -> List[str]:
    return [t for t in NAME_SPLIT_PATTERN.split(player_name.lower().strip()) if t]


def title_contains_player_name(title: str, player_name: str) -> bool:
    """
    True if every significant token of the player's name is in the title.

    Tokens longer than two characters may appear anywhere in the title;
    shorter ones ("Bo", "JJ") must stand as whole words, so "Bo University"
    never matches a "Bowman University" listing.
    """
    lowered = title.lower()
    tokens = player_name_tokens(player_name)
    if not tokens:
        return False

    for token in tokens:
        if len(token) > 2:
            if token not in lowered:
                return False
        elif not re.search(r"(?<![a-z0-9])" + re.escape(token) + r"(?![a-z0-9])", lowered):
            return False
    return True


def filter_by_player_name(
    listings: Iterable[ClassifiedListing],
    player_name: str,
) -> List[ClassifiedListing]:
    """Drop listings whose title does not name the player."""
    listings = list(listings)
    kept = [l for l in listings if title_contains_player_name(l.title, player_name)]
    dropped = len(listings) - len(kept)
    if dropped:
        logger.info(
            f"Name filter removed {dropped} listings",
            extra={"player": player_name, "dropped": dropped, "kept": len(kept)},
        )
    return kept


def exclusion_breakdown(listings: Iterable[ClassifiedListing]) -> Dict[str, int]:
    """Count excluded listings per reason."""
    counts: Counter = Counter(
        str(l.exclusion_reason) for l in listings if l.exclusion_reason is not None
    )
    return dict(counts)

