"""
Storage collaborators for the comp pipeline.

Design Patterns:
    - Repository Pattern: the pipeline only sees SaleRepository, never pymongo
    - Adapter Pattern: MongoSaleRepository for production, InMemorySaleRepository
      for dry runs and tests

Uniqueness of a sale is enforced on its normalized listing URL, system-wide.
In MongoDB that is a unique index; a concurrent insert of the same URL loses
with DuplicateKeyError, which insert_if_absent reports as "not inserted".
"""
import threading
from abc import ABC, abstractmethod
from datetime import datetime, date, timedelta
from typing import Optional, List, Iterator, Iterable, Dict, Any

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from core.database import (
    SALES_COLLECTION,
    CURRENT_MARKET_COLLECTION,
    PRICE_HISTORY_COLLECTION,
    BASELINE_COLLECTION,
)
from core.logging import get_logger
from core.models.sale import PersistedSale, normalize_player_name
from core.models.market import (
    CurrentMarket,
    PriceSnapshot,
    TrackedPlayer,
    generate_snapshot_id,
)

logger = get_logger("database")


# ============================================================================
# SALES
# ============================================================================

class SaleRepository(ABC):
    """
    Row operations the pipeline needs on stored sales.

    Subclasses must implement insert_if_absent, query_recent_by_player,
    count_by_player, iter_sales and delete_by_ids.
    """

    @abstractmethod
    def insert_if_absent(self, sale: PersistedSale) -> bool:
        """
        Store the sale unless one with the same normalized URL exists.

        Returns:
            True if inserted, False if it was already on file
        """
        pass

    @abstractmethod
    def query_recent_by_player(
        self,
        normalized_name: str,
        release_year: Optional[int] = None,
        limit: Optional[int] = None,
        days_back: Optional[int] = None,
    ) -> List[PersistedSale]:
        """Sales for a player, newest sale_date first."""
        pass

    @abstractmethod
    def count_by_player(self, normalized_name: str, release_year: Optional[int] = None) -> int:
        pass

    @abstractmethod
    def iter_sales(self) -> Iterator[PersistedSale]:
        """Every stored sale, for the data-quality sweep."""
        pass

    @abstractmethod
    def delete_by_ids(self, sale_ids: Iterable[str]) -> int:
        pass


class InMemorySaleRepository(SaleRepository):
    """Process-local sale store keyed by normalized URL."""

    def __init__(self, sales: Optional[Iterable[PersistedSale]] = None):
        self._sales: Dict[str, PersistedSale] = {}
        self._lock = threading.Lock()
        for sale in sales or []:
            self.insert_if_absent(sale)

    def __len__(self) -> int:
        return len(self._sales)

    def insert_if_absent(self, sale: PersistedSale) -> bool:
        with self._lock:
            if sale.normalized_url in self._sales:
                return False
            self._sales[sale.normalized_url] = sale
            return True

    def _matching(
        self,
        normalized_name: str,
        release_year: Optional[int],
        days_back: Optional[int] = None,
    ) -> List[PersistedSale]:
        cutoff = datetime.utcnow() - timedelta(days=days_back) if days_back else None
        return [
            sale for sale in self._sales.values()
            if sale.normalized_player_name == normalized_name
            and (release_year is None or sale.release_year == release_year)
            and (cutoff is None or sale.sale_date >= cutoff)
        ]

    def query_recent_by_player(
        self,
        normalized_name: str,
        release_year: Optional[int] = None,
        limit: Optional[int] = None,
        days_back: Optional[int] = None,
    ) -> List[PersistedSale]:
        with self._lock:
            sales = self._matching(normalized_name, release_year, days_back)
        sales.sort(key=lambda sale: sale.sale_date, reverse=True)
        if limit:
            sales = sales[:limit]
        return sales

    def count_by_player(self, normalized_name: str, release_year: Optional[int] = None) -> int:
        with self._lock:
            return len(self._matching(normalized_name, release_year))

    def iter_sales(self) -> Iterator[PersistedSale]:
        with self._lock:
            snapshot = list(self._sales.values())
        return iter(snapshot)

    def delete_by_ids(self, sale_ids: Iterable[str]) -> int:
        ids = set(sale_ids)
        with self._lock:
            doomed = [url for url, sale in self._sales.items() if sale.id in ids]
            for url in doomed:
                del self._sales[url]
        return len(doomed)


class MongoSaleRepository(SaleRepository):
    """Sales stored in the 'individual_sales' collection."""

    def __init__(self, db: Database):
        self.collection = db[SALES_COLLECTION]

    def ensure_indexes(self):
        self.collection.create_index("normalized_url", unique=True, name="uniq_normalized_url")
        self.collection.create_index(
            [("normalized_player_name", ASCENDING), ("sale_date", DESCENDING)],
            name="player_recent_sales",
        )
        self.collection.create_index("release_year", name="release_year")

    @staticmethod
    def _player_filter(
        normalized_name: str,
        release_year: Optional[int],
        days_back: Optional[int] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"normalized_player_name": normalized_name}
        if release_year is not None:
            query["release_year"] = release_year
        if days_back:
            query["sale_date"] = {"$gte": datetime.utcnow() - timedelta(days=days_back)}
        return query

    def insert_if_absent(self, sale: PersistedSale) -> bool:
        if self.collection.find_one({"normalized_url": sale.normalized_url}, {"_id": 1}):
            return False
        try:
            self.collection.insert_one(sale.to_dict_for_db())
        except DuplicateKeyError:
            # Lost a race with a concurrent run inserting the same listing
            logger.debug(
                "Concurrent insert of same listing ignored",
                extra={"normalized_url": sale.normalized_url},
            )
            return False
        return True

    def query_recent_by_player(
        self,
        normalized_name: str,
        release_year: Optional[int] = None,
        limit: Optional[int] = None,
        days_back: Optional[int] = None,
    ) -> List[PersistedSale]:
        cursor = self.collection.find(
            self._player_filter(normalized_name, release_year, days_back)
        ).sort("sale_date", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return [PersistedSale.from_db(doc) for doc in cursor]

    def count_by_player(self, normalized_name: str, release_year: Optional[int] = None) -> int:
        return self.collection.count_documents(self._player_filter(normalized_name, release_year))

    def iter_sales(self) -> Iterator[PersistedSale]:
        for doc in self.collection.find({}):
            yield PersistedSale.from_db(doc)

    def delete_by_ids(self, sale_ids: Iterable[str]) -> int:
        ids = list(sale_ids)
        if not ids:
            return 0
        result = self.collection.delete_many({"_id": {"$in": ids}})
        return result.deleted_count


# ============================================================================
# CACHED MARKET VIEW AND HISTORY
# ============================================================================

class MarketRepository:
    """current_market upserts and daily price_history snapshots."""

    def __init__(self, db: Database):
        self.current_market = db[CURRENT_MARKET_COLLECTION]
        self.price_history = db[PRICE_HISTORY_COLLECTION]

    def upsert_current_market(self, market: CurrentMarket):
        doc = market.to_dict_for_db()
        self.current_market.update_one({"_id": market.id}, {"$set": doc}, upsert=True)

    def get_current_market(self, player_name: str) -> Optional[CurrentMarket]:
        doc = self.current_market.find_one({"_id": normalize_player_name(player_name)})
        return CurrentMarket.model_validate(doc) if doc else None

    def record_price_snapshots(self, snapshot_date: Optional[date] = None) -> int:
        """
        Copy every cached market row into price_history for the given day.

        Returns:
            Number of snapshots written
        """
        snapshot_date = snapshot_date or datetime.utcnow().date()
        written = 0
        for doc in self.current_market.find({}):
            market = CurrentMarket.model_validate(doc)
            snapshot = PriceSnapshot(
                _id=generate_snapshot_id(market.normalized_player_name, snapshot_date),
                normalized_player_name=market.normalized_player_name,
                average_price=market.average_price,
                median_price=market.median_price,
                last_sale_price=market.last_sale_price,
                sample_size=market.sample_size,
                snapshot_date=snapshot_date.isoformat(),
            )
            self.price_history.update_one(
                {"_id": snapshot.id},
                {"$set": snapshot.to_dict_for_db()},
                upsert=True,
            )
            written += 1
        return written


# ============================================================================
# BASELINE PROVIDER
# ============================================================================

class BaselineRepository:
    """Tracked players and their known release year (from article baselines)."""

    def __init__(self, db: Database):
        self.collection = db[BASELINE_COLLECTION]

    def get_release_year(self, player_name: str) -> Optional[int]:
        doc = self.collection.find_one(
            {"normalized_player_name": normalize_player_name(player_name)},
            {"release_year": 1},
        )
        if not doc:
            return None
        return doc.get("release_year") or None

    def list_tracked_players(self) -> List[TrackedPlayer]:
        players = []
        cursor = self.collection.find(
            {},
            {"player_name": 1, "normalized_player_name": 1, "release_year": 1},
        ).sort("normalized_player_name", ASCENDING)
        for doc in cursor:
            name = doc.get("player_name") or doc.get("normalized_player_name")
            if not name:
                continue
            players.append(TrackedPlayer(
                player_name=name,
                normalized_player_name=doc.get("normalized_player_name") or normalize_player_name(name),
                release_year=doc.get("release_year") or None,
            ))
        return players
