#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test suite for release year inference and variant-set selection.
"""
import sys
from pathlib import Path
from datetime import datetime

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.models.pipeline import YearSource
from core.models.sale import VariantClass, create_raw_listing
from services.comps.classifier import classify
from services.comps.pipeline import select_variant_set
from services.comps.year_inference import infer_release_year, resolve_release_year


def _classified(title, item_id):
    return classify(create_raw_listing(
        title=title,
        item_id=item_id,
        url=f"https://www.ebay.com/itm/{item_id}",
        price=40.0,
        sale_date=datetime(2024, 3, 1),
    ))


def test_minimum_base_year_wins():
    """Earliest year wins even when a later year is more frequent."""
    print("\n=== Test 1: Minimum Base Year ===")

    listings = [
        _classified("2023 Bowman Chrome Walker Jenkins Auto", "1"),
        _classified("2022 Bowman Chrome Walker Jenkins Auto", "2"),
        _classified("2024 Bowman Chrome Walker Jenkins Auto", "3"),
        _classified("2024 Bowman Chrome Walker Jenkins Auto", "4"),
        _classified("2024 Bowman Chrome Walker Jenkins Auto", "5"),
    ]

    assert infer_release_year(listings) == 2022
    print("✓ Minimum base year test passed")


def test_excluded_years_ignored():
    print("\n=== Test 2: Excluded Years Ignored ===")

    listings = [
        _classified("2021 Bowman Chrome Walker Jenkins Auto PSA 10", "1"),
        _classified("2023 Bowman Chrome Walker Jenkins Auto", "2"),
    ]

    assert infer_release_year(listings) == 2023
    print("✓ Excluded years test passed")


def test_fallback_years_used_without_base_years():
    print("\n=== Test 3: Fallback Years ===")

    listings = [
        _classified("Bowman Chrome Walker Jenkins Auto", "1"),
        _classified("2023 Bowman Chrome Walker Jenkins Refractor Auto /499", "2"),
        _classified("2022 Bowman Chrome Walker Jenkins Refractor Auto /499", "3"),
    ]

    assert infer_release_year(listings) == 2022
    print("✓ Fallback years test passed")


def test_no_years():
    print("\n=== Test 4: No Years ===")

    assert infer_release_year([]) is None
    assert infer_release_year([_classified("Bowman Chrome Walker Jenkins Auto", "1")]) is None
    print("✓ No years test passed")


def test_known_year_short_circuits():
    print("\n=== Test 5: Known Year ===")

    listings = [_classified("2021 Bowman Chrome Walker Jenkins Auto", "1")]

    assert resolve_release_year(listings, known_year=2022) == (2022, YearSource.PROVIDED)
    assert resolve_release_year(listings) == (2021, YearSource.INFERRED)
    assert resolve_release_year([]) == (None, None)
    print("✓ Known year test passed")


def test_variant_set_selection():
    print("\n=== Test 6: Variant Set Selection ===")

    base_2022 = _classified("2022 Bowman Chrome Walker Jenkins Auto", "1")
    base_2023 = _classified("2023 Bowman Chrome Walker Jenkins Auto", "2")
    fallback_2022 = _classified("2022 Bowman Chrome Walker Jenkins Refractor Auto /499", "3")
    no_year_base = _classified("Bowman Chrome Walker Jenkins Auto", "4")
    excluded = _classified("2022 Bowman Chrome Walker Jenkins Auto PSA 10", "5")

    # Base from the resolved year first
    selected, variant = select_variant_set([base_2022, base_2023, fallback_2022, excluded], 2022)
    assert [l.item_id for l in selected] == ["1"]
    assert variant == VariantClass.BASE

    # Fallback from the resolved year when no base matches
    selected, variant = select_variant_set([base_2023, fallback_2022], 2022)
    assert [l.item_id for l in selected] == ["3"]
    assert variant == VariantClass.FALLBACK

    # Resolved year with nothing matching
    assert select_variant_set([base_2023, excluded], 2022) == ([], None)

    # No resolved year: all base, then all fallback
    selected, variant = select_variant_set([no_year_base, excluded], None)
    assert [l.item_id for l in selected] == ["4"]
    assert variant == VariantClass.BASE
    print("✓ Variant set selection test passed")


def main():
    """Run all tests."""
    print("=" * 60)
    print("YEAR INFERENCE TESTS")
    print("=" * 60)

    tests = [
        test_minimum_base_year_wins,
        test_excluded_years_ignored,
        test_fallback_years_used_without_base_years,
        test_no_years,
        test_known_year_short_circuits,
        test_variant_set_selection,
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
