"""
Data-quality sweep - Re-checks stored sales against the exclusion rules.

Rules tighten over time; sales stored before a rule existed would otherwise
keep skewing averages. The sweep re-applies the graded, lot, wrong-product
and IP-auto rules plus "unclear pricing" (OBO listings, where the recorded
price may not be what was paid) and deletes what they flag.

Parallel rules are not swept: fallback-variant sales carry parallel tokens
by definition.
"""
from collections import Counter
from typing import Optional, Sequence, Tuple

from core.logging import get_logger
from core.models.pipeline import SweepFinding, SweepReport
from core.repositories import SaleRepository
from services.comps.rules import SWEEP_RULES, ClassificationRule

logger = get_logger("comp-sweep")


def evaluate_title_for_sweep(
    title: str,
    rules: Sequence[ClassificationRule] = SWEEP_RULES,
) -> Optional[Tuple[str, str]]:
    """
    Returns:
        (reason, matched token) for the first rule that flags the title,
        or None if the sale is clean
    """
    lowered = title.lower()
    for rule in rules:
        token = rule.match(lowered)
        if token is not None and rule.reason is not None:
            return str(rule.reason.value), token
    return None


def sweep_invalid_sales(store: SaleRepository, dry_run: bool = False) -> SweepReport:
    """
    Flag stored sales that fail the sweep rules and delete them.

    Args:
        store: Sale repository to scan
        dry_run: Report only, delete nothing

    Returns:
        SweepReport with findings and per-reason counts
    """
    report = SweepReport(dry_run=dry_run)

    for sale in store.iter_sales():
        report.checked += 1
        verdict = evaluate_title_for_sweep(sale.title)
        if verdict is None:
            continue
        reason, token = verdict
        report.findings.append(SweepFinding(
            sale_id=sale.id,
            normalized_player_name=sale.normalized_player_name,
            title=sale.title,
            reason=reason,
            token=token,
        ))

    report.by_reason = dict(Counter(f.reason for f in report.findings))

    logger.info(
        f"Sweep checked {report.checked} sales, flagged {len(report.findings)}",
        extra={"checked": report.checked, "flagged": len(report.findings), "by_reason": report.by_reason},
    )

    if report.findings and not dry_run:
        report.deleted = store.delete_by_ids(f.sale_id for f in report.findings)
        logger.info(f"Deleted {report.deleted} invalid sales", extra={"deleted": report.deleted})

    return report
