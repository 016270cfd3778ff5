#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test suite for the budgeted batch refresh.
Time is simulated with an injected clock; sleeping advances it.
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.models.pipeline import ErrorCode, PipelineResult, PlayerTarget
from services.comps.batch import refresh_players


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _ok(name, inserted=2):
    return PipelineResult(
        player_name=name,
        normalized_player_name=name.lower(),
        success=True,
        inserted=inserted,
        average_price=50.0,
        median_price=50.0,
        last_sale_price=50.0,
        sample_size=2,
    )


def _failed(name, code=ErrorCode.NO_RESULTS):
    return PipelineResult(player_name=name, normalized_player_name=name.lower()).fail(
        code, f"No sales found for {name}"
    )


def _pipeline(clock, outcomes, seconds_per_player=0.0):
    """Pipeline stub returning (or raising) the scripted outcome per player."""
    pipeline = MagicMock()

    def run(player_name, target_year=None):
        clock.now += seconds_per_player
        outcome = outcomes[player_name]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    pipeline.run.side_effect = run
    return pipeline


def test_sequential_with_delay():
    print("\n=== Test 1: Sequential Refresh With Delay ===")

    clock = FakeClock()
    names = ["Termarr Johnson", "Ethan Salas", "Walker Jenkins"]
    pipeline = _pipeline(clock, {n: _ok(n) for n in names})
    targets = [PlayerTarget(player_name=n, known_year=2022) for n in names]

    batch = refresh_players(pipeline, targets, time_budget_seconds=270, delay_seconds=1.5,
                            sleep=clock.sleep, clock=clock)

    assert batch.total_players == 3
    assert batch.refreshed == 3
    assert batch.failed == 0
    assert batch.skipped == 0
    assert batch.new_sales_added == 6
    assert not batch.budget_exhausted
    # Delay between players, not after the last one
    assert clock.sleeps == [1.5, 1.5]
    assert [c.args for c in pipeline.run.call_args_list] == [(n, 2022) for n in names]
    print("✓ Sequential refresh test passed")


def test_failures_are_isolated():
    """A failed result or an exception for one player does not stop the batch."""
    print("\n=== Test 2: Per-Player Failure Isolation ===")

    clock = FakeClock()
    pipeline = _pipeline(clock, {
        "Termarr Johnson": _ok("Termarr Johnson"),
        "Ethan Salas": RuntimeError("boom"),
        "Walker Jenkins": _failed("Walker Jenkins"),
        "Jackson Holliday": _ok("Jackson Holliday", inserted=1),
    })
    targets = [PlayerTarget(player_name=n) for n in
               ["Termarr Johnson", "Ethan Salas", "Walker Jenkins", "Jackson Holliday"]]

    batch = refresh_players(pipeline, targets, time_budget_seconds=270, delay_seconds=0,
                            sleep=clock.sleep, clock=clock)

    assert batch.refreshed == 2
    assert batch.failed == 2
    assert batch.new_sales_added == 3
    assert [e.player_name for e in batch.errors] == ["Ethan Salas", "Walker Jenkins"]
    assert batch.errors[0].error == "boom"
    assert len(batch.results) == 3
    print("✓ Failure isolation test passed")


def test_budget_skips_unstarted_players():
    """Once the budget is spent, remaining players are skipped, not failed."""
    print("\n=== Test 3: Time Budget ===")

    clock = FakeClock()
    names = ["A One", "B Two", "C Three", "D Four", "E Five"]
    pipeline = _pipeline(clock, {n: _ok(n) for n in names}, seconds_per_player=60)
    targets = [PlayerTarget(player_name=n) for n in names]

    batch = refresh_players(pipeline, targets, time_budget_seconds=100, delay_seconds=1.5,
                            sleep=clock.sleep, clock=clock)

    # A starts at 0, B at 61.5, C at 123 > 100
    assert batch.refreshed == 2
    assert batch.failed == 0
    assert batch.skipped == 3
    assert batch.skipped_players == ["C Three", "D Four", "E Five"]
    assert batch.budget_exhausted
    assert pipeline.run.call_count == 2
    print("✓ Time budget test passed")


def test_empty_batch():
    print("\n=== Test 4: Empty Batch ===")

    clock = FakeClock()
    batch = refresh_players(MagicMock(), [], time_budget_seconds=10, delay_seconds=1,
                            sleep=clock.sleep, clock=clock)

    assert batch.total_players == 0
    assert batch.refreshed == batch.failed == batch.skipped == 0
    assert clock.sleeps == []
    print("✓ Empty batch test passed")


def main():
    """Run all tests."""
    print("=" * 60)
    print("BATCH REFRESH TESTS")
    print("=" * 60)

    tests = [
        test_sequential_with_delay,
        test_failures_are_isolated,
        test_budget_skips_unstarted_players,
        test_empty_batch,
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
