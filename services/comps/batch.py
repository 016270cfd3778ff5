"""
Batch Refresh - Runs the comp pipeline over many players, one at a time.

Players are processed sequentially with a fixed delay between them so the
comp source is never hammered. A wall-clock budget bounds the whole batch:
once it is spent, players not yet started are reported as skipped (not
failed). The player in flight always finishes.
"""
import time
from typing import Callable, Iterable, Optional

from core.config import config
from core.logging import get_logger
from core.models.pipeline import BatchRefreshResult, PlayerFailure, PlayerTarget
from services.comps.pipeline import CompPipeline

logger = get_logger("comp-batch")


def refresh_players(
    pipeline: CompPipeline,
    targets: Iterable[PlayerTarget],
    time_budget_seconds: Optional[float] = None,
    delay_seconds: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> BatchRefreshResult:
    """
    Refresh every target in order.

    Args:
        pipeline: Configured CompPipeline
        targets: Players with their known release year, if any
        time_budget_seconds: Stop starting new players after this long
        delay_seconds: Pause between players
        sleep: Injected for tests
        clock: Monotonic clock, injected for tests

    Returns:
        BatchRefreshResult with per-player results and aggregate counts
    """
    budget = time_budget_seconds if time_budget_seconds is not None else config.REFRESH_TIME_BUDGET_SECONDS
    delay = delay_seconds if delay_seconds is not None else config.REFRESH_DELAY_SECONDS

    targets = list(targets)
    batch = BatchRefreshResult(total_players=len(targets))
    started = clock()

    logger.info(
        f"Starting batch refresh of {len(targets)} players",
        extra={"players": len(targets), "budget_seconds": budget, "delay_seconds": delay},
    )

    for index, target in enumerate(targets):
        elapsed = clock() - started
        if elapsed > budget:
            remaining = [t.player_name for t in targets[index:]]
            batch.skipped = len(remaining)
            batch.skipped_players = remaining
            logger.warning(
                f"Time budget reached after {elapsed:.1f}s, skipping {len(remaining)} players",
                extra={"elapsed_seconds": round(elapsed, 1), "skipped": len(remaining)},
            )
            break

        logger.info(
            f"[{index + 1}/{len(targets)}] {target.player_name}",
            extra={"player": target.player_name, "known_year": target.known_year},
        )

        try:
            result = pipeline.run(target.player_name, target.known_year)
        except Exception as e:
            logger.error(
                f"Unhandled error refreshing {target.player_name}: {e}",
                exc_info=True,
                extra={"player": target.player_name},
            )
            batch.failed += 1
            batch.errors.append(PlayerFailure(player_name=target.player_name, error=str(e)))
        else:
            batch.results.append(result)
            batch.new_sales_added += result.inserted
            if result.success and result.average_price is not None:
                batch.refreshed += 1
            else:
                batch.failed += 1
                message = result.error.message if result.error else "no market data"
                batch.errors.append(PlayerFailure(player_name=target.player_name, error=message))

        if index < len(targets) - 1 and delay > 0:
            sleep(delay)

    batch.elapsed_seconds = round(clock() - started, 2)
    logger.info(
        f"Batch complete: {batch.refreshed} refreshed, {batch.failed} failed, "
        f"{batch.skipped} skipped, {batch.new_sales_added} new sales",
        extra={
            "refreshed": batch.refreshed,
            "failed": batch.failed,
            "skipped": batch.skipped,
            "new_sales_added": batch.new_sales_added,
            "elapsed_seconds": batch.elapsed_seconds,
        },
    )
    return batch
