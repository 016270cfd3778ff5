"""
Sale persistence - insert-if-absent keyed on the normalized listing URL.

Re-running a player's pipeline with the same source response inserts
nothing the second time; every listing comes back as a duplicate.
"""
from dataclasses import dataclass
from typing import Iterable

from core.logging import get_logger
from core.models.sale import RawListing, VariantClass, create_persisted_sale
from core.repositories import SaleRepository

logger = get_logger("database")


@dataclass
class PersistOutcome:
    inserted: int = 0
    duplicate: int = 0


def persist_sales(
    store: SaleRepository,
    player_name: str,
    listings: Iterable[RawListing],
    variant_class: VariantClass,
) -> PersistOutcome:
    """
    Store each listing unless its normalized URL is already on file.

    Args:
        store: Sale repository enforcing URL uniqueness
        player_name: Display name to tag the sales with
        listings: Admissible listings for one variant class
        variant_class: base or fallback

    Returns:
        PersistOutcome with inserted / duplicate counts
    """
    outcome = PersistOutcome()

    for listing in listings:
        sale = create_persisted_sale(player_name, listing, variant_class)
        if store.insert_if_absent(sale):
            outcome.inserted += 1
        else:
            outcome.duplicate += 1

    logger.info(
        f"Persisted {outcome.inserted} new sales ({outcome.duplicate} already on file)",
        extra={
            "player": player_name,
            "variant_class": VariantClass(variant_class).value,
            "inserted": outcome.inserted,
            "duplicate": outcome.duplicate,
        },
    )
    return outcome
