#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test suite for sale storage.
Covers the in-memory store directly and the MongoDB store against a mocked
pymongo collection.
"""
import sys
from pathlib import Path
from datetime import datetime, timedelta
from unittest.mock import MagicMock

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from pymongo.errors import DuplicateKeyError

from core.database import SALES_COLLECTION
from core.models.sale import VariantClass, create_persisted_sale, create_raw_listing
from core.repositories import InMemorySaleRepository, MongoSaleRepository
from services.comps.persistence import persist_sales


def _listing(item_id, price=40.0, sale_date=None, title=None, query=""):
    return create_raw_listing(
        title=title or "2022 Bowman Chrome Termarr Johnson Auto",
        item_id=item_id,
        url=f"https://www.ebay.com/itm/{item_id}{query}",
        price=price,
        sale_date=sale_date or datetime(2024, 1, 15),
    )


def _sale(item_id, player="Termarr Johnson", **kwargs):
    return create_persisted_sale(player, _listing(item_id, **kwargs), VariantClass.BASE)


def test_insert_if_absent_uses_normalized_url():
    """The same listing with different tracking parameters is stored once."""
    print("\n=== Test 1: Insert If Absent ===")

    store = InMemorySaleRepository()

    assert store.insert_if_absent(_sale("111", query="?nordt=true")) is True
    assert store.insert_if_absent(_sale("111", query="?_trksid=p2047675")) is False
    assert store.insert_if_absent(_sale("111")) is False
    assert len(store) == 1
    print("✓ Insert if absent test passed")


def test_uniqueness_is_system_wide():
    """A listing matched under a second player's query is still a duplicate."""
    print("\n=== Test 2: System-Wide Uniqueness ===")

    store = InMemorySaleRepository()

    assert store.insert_if_absent(_sale("111", player="Termarr Johnson"))
    assert not store.insert_if_absent(_sale("111", player="Jackson Holliday"))
    assert store.count_by_player("jackson holliday") == 0
    print("✓ System-wide uniqueness test passed")


def test_persist_sales_counts():
    print("\n=== Test 3: Persist Sales Counts ===")

    store = InMemorySaleRepository()
    listings = [_listing("1"), _listing("2"), _listing("3", query="?nordt=true")]

    first = persist_sales(store, "Termarr Johnson", listings, VariantClass.BASE)
    second = persist_sales(store, "Termarr Johnson", listings, VariantClass.BASE)

    assert (first.inserted, first.duplicate) == (3, 0)
    assert (second.inserted, second.duplicate) == (0, 3)
    assert store.count_by_player("termarr johnson") == 3
    print("✓ Persist counts test passed")


def test_query_recent_by_player():
    print("\n=== Test 4: Query Recent By Player ===")

    now = datetime.utcnow()
    store = InMemorySaleRepository([
        _sale("1", sale_date=now - timedelta(days=3), price=10.0),
        _sale("2", sale_date=now - timedelta(days=1), price=20.0),
        _sale("3", sale_date=now - timedelta(days=40), price=30.0),
        _sale("4", sale_date=now - timedelta(days=2), price=40.0,
              title="2023 Bowman Chrome Termarr Johnson Auto"),
        _sale("5", player="Ethan Salas", sale_date=now, price=99.0),
    ])

    recent = store.query_recent_by_player("termarr johnson")
    assert [s.item_id for s in recent] == ["2", "4", "1", "3"]

    assert [s.item_id for s in store.query_recent_by_player("termarr johnson", limit=2)] == ["2", "4"]
    assert [s.item_id for s in store.query_recent_by_player("termarr johnson", release_year=2022)] == ["2", "1", "3"]
    assert [s.item_id for s in store.query_recent_by_player("termarr johnson", days_back=30)] == ["2", "4", "1"]
    assert store.count_by_player("termarr johnson", release_year=2023) == 1
    print("✓ Query recent test passed")


def test_delete_by_ids():
    print("\n=== Test 5: Delete By Ids ===")

    sales = [_sale("1"), _sale("2"), _sale("3")]
    store = InMemorySaleRepository(sales)

    assert store.delete_by_ids([sales[0].id, sales[2].id, "missing"]) == 2
    assert [s.item_id for s in store.iter_sales()] == ["2"]
    print("✓ Delete by ids test passed")


def _mongo_store():
    collection = MagicMock()
    db = MagicMock()
    db.__getitem__.return_value = collection
    return MongoSaleRepository(db), collection, db


def test_mongo_insert_if_absent():
    print("\n=== Test 6: Mongo Insert If Absent ===")

    store, collection, db = _mongo_store()
    db.__getitem__.assert_called_with(SALES_COLLECTION)

    collection.find_one.return_value = None
    sale = _sale("111", query="?nordt=true")
    assert store.insert_if_absent(sale) is True

    collection.find_one.assert_called_with(
        {"normalized_url": "https://www.ebay.com/itm/111"}, {"_id": 1}
    )
    inserted_doc = collection.insert_one.call_args[0][0]
    assert inserted_doc["_id"] == sale.id
    assert inserted_doc["normalized_url"] == "https://www.ebay.com/itm/111"

    collection.find_one.return_value = {"_id": "existing"}
    collection.insert_one.reset_mock()
    assert store.insert_if_absent(sale) is False
    collection.insert_one.assert_not_called()
    print("✓ Mongo insert if absent test passed")


def test_mongo_duplicate_key_race_is_not_an_error():
    """A concurrent insert of the same URL resolves to 'not inserted'."""
    print("\n=== Test 7: Mongo Duplicate Key Race ===")

    store, collection, _ = _mongo_store()
    collection.find_one.return_value = None
    collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")

    assert store.insert_if_absent(_sale("111")) is False
    print("✓ Duplicate key race test passed")


def test_mongo_query_filters():
    print("\n=== Test 8: Mongo Query Filters ===")

    store, collection, _ = _mongo_store()
    cursor = MagicMock()
    collection.find.return_value = cursor
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.__iter__.return_value = iter([_sale("1").to_dict_for_db()])

    sales = store.query_recent_by_player("termarr johnson", release_year=2022, limit=5)

    assert [s.item_id for s in sales] == ["1"]
    collection.find.assert_called_once_with(
        {"normalized_player_name": "termarr johnson", "release_year": 2022}
    )
    cursor.limit.assert_called_once_with(5)

    collection.count_documents.return_value = 7
    assert store.count_by_player("termarr johnson") == 7
    collection.count_documents.assert_called_once_with({"normalized_player_name": "termarr johnson"})
    print("✓ Mongo query filters test passed")


def test_mongo_unique_index():
    print("\n=== Test 9: Mongo Unique Index ===")

    store, collection, _ = _mongo_store()
    store.ensure_indexes()

    first_call = collection.create_index.call_args_list[0]
    assert first_call[0][0] == "normalized_url"
    assert first_call[1]["unique"] is True
    print("✓ Mongo unique index test passed")


def main():
    """Run all tests."""
    print("=" * 60)
    print("SALE REPOSITORY TESTS")
    print("=" * 60)

    tests = [
        test_insert_if_absent_uses_normalized_url,
        test_uniqueness_is_system_wide,
        test_persist_sales_counts,
        test_query_recent_by_player,
        test_delete_by_ids,
        test_mongo_insert_if_absent,
        test_mongo_duplicate_key_race_is_not_an_error,
        test_mongo_query_filters,
        test_mongo_unique_index,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except AssertionError as e:
            failed += 1
            print(f"\n❌ FAILED: {test.__name__}")
            print(f"   Error: {e}")
        except Exception as e:
            failed += 1
            print(f"\n❌ ERROR: {test.__name__}")
            print(f"   Exception: {type(e).__name__}: {e}")

    print("\n" + "=" * 60)
    print(f"SUMMARY: {passed} passed, {failed} failed")
    print("=" * 60)

    return 0 if failed == 0 else 1


if __name__ == "__main__":
    exit(main())
