"""Transfer reconciliation over correlated transfer legs."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from app.db import BalanceLedgerRepositoryPort, LedgerEntryRecord
from app.domain import LedgerSourceType

from .interfaces import TransferReconciliationFinding, TransferReconciliationReport

logger = logging.getLogger(__name__)

RECONCILIATION_MISSING_IN_LEG = "MISSING_IN_LEG"
RECONCILIATION_MISSING_OUT_LEG = "MISSING_OUT_LEG"
RECONCILIATION_AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
RECONCILIATION_UNCORRELATED_LEG = "UNCORRELATED_LEG"


def ledger_reconcile_transfer_legs(legs: list[LedgerEntryRecord]) -> TransferReconciliationReport:
    """Group transfer legs by correlation key and report inconsistencies.

    A consistent transfer has at least one `TRANSFER_OUT` leg and one
    `TRANSFER_IN` leg whose amounts net to zero.

    Args:
        legs: `TRANSFER_IN` and `TRANSFER_OUT` entries.

    Returns:
        TransferReconciliationReport: Findings ordered by correlation key.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    legs_by_ref_id: dict[str, list[LedgerEntryRecord]] = {}
    findings: list[TransferReconciliationFinding] = []

    for leg in legs:
        if leg.source_ref_id is None:
            findings.append(
                TransferReconciliationFinding(
                    code=RECONCILIATION_UNCORRELATED_LEG,
                    source_ref_id=None,
                    ledger_entry_ids=[leg.ledger_entry_id],
                    balance_account_ids=[leg.balance_account_id],
                    net_amount=Decimal(leg.amount),
                )
            )
            continue
        legs_by_ref_id.setdefault(leg.source_ref_id, []).append(leg)

    for source_ref_id in sorted(legs_by_ref_id):
        transfer_legs = legs_by_ref_id[source_ref_id]
        source_types = {leg.source_type for leg in transfer_legs}
        net_amount = sum((Decimal(leg.amount) for leg in transfer_legs), Decimal("0"))

        code = None
        if LedgerSourceType.TRANSFER_IN.value not in source_types:
            code = RECONCILIATION_MISSING_IN_LEG
        elif LedgerSourceType.TRANSFER_OUT.value not in source_types:
            code = RECONCILIATION_MISSING_OUT_LEG
        elif net_amount != 0:
            code = RECONCILIATION_AMOUNT_MISMATCH

        if code is not None:
            findings.append(
                TransferReconciliationFinding(
                    code=code,
                    source_ref_id=source_ref_id,
                    ledger_entry_ids=[leg.ledger_entry_id for leg in transfer_legs],
                    balance_account_ids=sorted({leg.balance_account_id for leg in transfer_legs}),
                    net_amount=net_amount,
                )
            )

    return TransferReconciliationReport(
        transfer_count=len(legs_by_ref_id),
        leg_count=len(legs),
        findings=findings,
    )


class TransferReconciliationService:
    """Detect one-sided or unbalanced transfers in the ledger."""

    def __init__(self, repository: BalanceLedgerRepositoryPort):
        if repository is None:
            raise ValueError("repository must not be None")
        self._repository = repository

    def ledger_reconcile_transfers(self, occurred_from_utc: datetime | None = None) -> TransferReconciliationReport:
        """Scan transfer legs and report inconsistencies.

        Args:
            occurred_from_utc: Optional inclusive lower bound on leg time.

        Returns:
            TransferReconciliationReport: Scan summary with findings.

        Raises:
            RuntimeError: Raised when persistence read fails.
        """

        report = ledger_reconcile_transfer_legs(self._repository.db_ledger_transfer_leg_list(occurred_from_utc))
        for finding in report.findings:
            logger.warning(
                "transfer reconciliation %s: source_ref_id=%s accounts=%s net=%s",
                finding.code,
                finding.source_ref_id,
                ",".join(finding.balance_account_ids),
                finding.net_amount,
            )
        logger.info(
            "reconciled %s transfers (%s legs), findings=%s",
            report.transfer_count,
            report.leg_count,
            len(report.findings),
        )
        return report


__all__ = [
    "RECONCILIATION_AMOUNT_MISMATCH",
    "RECONCILIATION_MISSING_IN_LEG",
    "RECONCILIATION_MISSING_OUT_LEG",
    "RECONCILIATION_UNCORRELATED_LEG",
    "TransferReconciliationService",
    "ledger_reconcile_transfer_legs",
]
