"""Job-layer orchestrator for scheduled balance ledger maintenance."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from app.domain import domain_build_stage_event
from app.ledger import (
    BalanceLedgerService,
    snapshot_normalize_date,
    snapshot_resolve_report_date_local,
    snapshot_resolve_timezone,
)

from .interfaces import JobExecutionResult, JobOrchestratorPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerMaintenanceConfig:
    """Configuration values for scheduled ledger maintenance.

    Attributes:
        balance_account_ids: Accounts processed by recompute and snapshot jobs.
        snapshot_lookback_days: Number of days ending at the target date that the snapshot job rebuilds.
        report_timezone_name: IANA timezone used to resolve "today".
    """

    balance_account_ids: tuple[str, ...]
    snapshot_lookback_days: int = 1
    report_timezone_name: str = "UTC"


class LedgerMaintenanceOrchestrator(JobOrchestratorPort):
    """Run recompute, snapshot and reconciliation jobs over configured accounts.

    Each account is processed independently: a failure on one account is
    recorded in the timeline and the remaining accounts are still processed.
    """

    RECOMPUTE_JOB_NAME = "recompute_run"
    SNAPSHOT_JOB_NAME = "snapshot_run"
    RECONCILE_JOB_NAME = "reconcile_run"

    def __init__(
        self,
        ledger_service: BalanceLedgerService,
        config: LedgerMaintenanceConfig,
        now_provider: Callable[[], datetime] | None = None,
    ):
        """Initialize ledger maintenance dependencies.

        Args:
            ledger_service: Balance ledger service.
            config: Maintenance configuration values.
            now_provider: Optional UTC clock used to resolve the default snapshot date.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies or config values are invalid.
        """

        if ledger_service is None:
            raise ValueError("ledger_service must not be None")
        if config.snapshot_lookback_days < 1:
            raise ValueError("config.snapshot_lookback_days must be >= 1")

        self._ledger_service = ledger_service
        self._config = config
        self._report_timezone = snapshot_resolve_timezone(config.report_timezone_name)
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))

    def job_supported_names(self) -> tuple[str, ...]:
        """Return supported job names.

        Returns:
            tuple[str, ...]: Supported job names.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return (self.RECOMPUTE_JOB_NAME, self.SNAPSHOT_JOB_NAME, self.RECONCILE_JOB_NAME)

    def job_configured_account_ids(self) -> tuple[str, ...]:
        """Return the accounts processed by `job_execute`."""

        return self._config.balance_account_ids

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Execute one maintenance job over the configured accounts.

        Args:
            job_name: Name of job to execute.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            ValueError: Raised when job name is unsupported.
        """

        normalized_job_name = job_name.strip() if isinstance(job_name, str) else ""
        if normalized_job_name == self.RECOMPUTE_JOB_NAME:
            return self.job_execute_recompute(self._config.balance_account_ids)
        if normalized_job_name == self.SNAPSHOT_JOB_NAME:
            return self.job_execute_snapshot(self._config.balance_account_ids)
        if normalized_job_name == self.RECONCILE_JOB_NAME:
            return self.job_execute_reconcile()
        raise ValueError(f"unsupported job_name={normalized_job_name}")

    def job_execute_recompute(self, balance_account_ids: tuple[str, ...] | list[str]) -> JobExecutionResult:
        """Recompute running balances for each account.

        Args:
            balance_account_ids: Accounts to recompute.

        Returns:
            JobExecutionResult: `failed` when any account failed, otherwise `success`.

        Raises:
            RuntimeError: This method reports failures through the result.
        """

        timeline: list[dict[str, object]] = [domain_build_stage_event(stage="run", status="started")]
        failed_count = 0

        for balance_account_id in balance_account_ids:
            timeline.append(
                domain_build_stage_event(stage="recompute", status="started", balance_account_id=balance_account_id)
            )
            try:
                recompute_result = self._ledger_service.ledger_recompute(balance_account_id)
            except Exception as error:  # pylint: disable=broad-exception-caught
                failed_count += 1
                logger.exception("recompute failed for %s", balance_account_id)
                timeline.append(self._job_failure_event("recompute", balance_account_id, error))
                continue
            timeline.append(
                domain_build_stage_event(
                    stage="recompute",
                    status="completed",
                    balance_account_id=balance_account_id,
                    details={
                        "entry_count": recompute_result.entry_count,
                        "updated_count": recompute_result.updated_count,
                        "anchor_balance": str(recompute_result.anchor_balance),
                    },
                )
            )

        return self._job_finish(self.RECOMPUTE_JOB_NAME, timeline, failed_count)

    def job_execute_snapshot(
        self,
        balance_account_ids: tuple[str, ...] | list[str],
        date_to: date | str | None = None,
    ) -> JobExecutionResult:
        """Rebuild daily snapshots over the lookback window ending at `date_to`.

        Args:
            balance_account_ids: Accounts to snapshot.
            date_to: Last day to rebuild; defaults to today in the reporting timezone.

        Returns:
            JobExecutionResult: `failed` when any account failed, otherwise `success`.

        Raises:
            ValueError: Raised when date_to is malformed.
        """

        resolved_date_to = (
            snapshot_resolve_report_date_local(self._now_provider(), self._report_timezone)
            if date_to is None
            else snapshot_normalize_date(date_to)
        )
        resolved_date_from = resolved_date_to - timedelta(days=self._config.snapshot_lookback_days - 1)

        timeline: list[dict[str, object]] = [
            domain_build_stage_event(
                stage="run",
                status="started",
                details={"date_from": resolved_date_from.isoformat(), "date_to": resolved_date_to.isoformat()},
            )
        ]
        failed_count = 0

        for balance_account_id in balance_account_ids:
            try:
                snapshots = self._ledger_service.ledger_daily_snapshot_recompute_range(
                    balance_account_id,
                    resolved_date_from,
                    resolved_date_to,
                )
            except Exception as error:  # pylint: disable=broad-exception-caught
                failed_count += 1
                logger.exception("snapshot rebuild failed for %s", balance_account_id)
                timeline.append(self._job_failure_event("snapshot", balance_account_id, error))
                continue
            timeline.append(
                domain_build_stage_event(
                    stage="snapshot",
                    status="completed",
                    balance_account_id=balance_account_id,
                    details={
                        "snapshot_count": len(snapshots),
                        "closing_balance": str(snapshots[-1].closing_balance),
                    },
                )
            )

        return self._job_finish(self.SNAPSHOT_JOB_NAME, timeline, failed_count)

    def job_execute_reconcile(self, occurred_from_utc: datetime | None = None) -> JobExecutionResult:
        """Scan transfer legs and record findings in the timeline.

        Args:
            occurred_from_utc: Optional inclusive lower bound on leg time.

        Returns:
            JobExecutionResult: `success` when the scan ran, `failed` when it could not.

        Raises:
            RuntimeError: This method reports failures through the result.
        """

        timeline: list[dict[str, object]] = [domain_build_stage_event(stage="run", status="started")]
        try:
            report = self._ledger_service.ledger_reconcile_transfers(occurred_from_utc)
        except Exception as error:  # pylint: disable=broad-exception-caught
            logger.exception("transfer reconciliation failed")
            timeline.append(self._job_failure_event("reconcile", None, error))
            return self._job_finish(self.RECONCILE_JOB_NAME, timeline, failed_count=1)

        timeline.append(
            domain_build_stage_event(
                stage="reconcile",
                status="completed",
                details={
                    "transfer_count": report.transfer_count,
                    "leg_count": report.leg_count,
                    "finding_count": len(report.findings),
                    "findings": [
                        {
                            "code": finding.code,
                            "source_ref_id": finding.source_ref_id,
                            "ledger_entry_ids": finding.ledger_entry_ids,
                            "balance_account_ids": finding.balance_account_ids,
                            "net_amount": str(finding.net_amount),
                        }
                        for finding in report.findings
                    ],
                },
            )
        )
        return self._job_finish(self.RECONCILE_JOB_NAME, timeline, failed_count=0)

    def _job_failure_event(
        self,
        stage: str,
        balance_account_id: str | None,
        error: Exception,
    ) -> dict[str, object]:
        return domain_build_stage_event(
            stage=stage,
            status="failed",
            balance_account_id=balance_account_id,
            details={
                "error_type": type(error).__name__,
                "error_message": str(error),
                "failed_at_utc": datetime.now(timezone.utc).isoformat(),
            },
        )

    def _job_finish(
        self,
        job_name: str,
        timeline: list[dict[str, object]],
        failed_count: int,
    ) -> JobExecutionResult:
        status = "failed" if failed_count else "success"
        timeline.append(domain_build_stage_event(stage="run", status=status, details={"failed_count": failed_count}))
        logger.info("job %s finished: status=%s failed=%s", job_name, status, failed_count)
        return JobExecutionResult(job_name=job_name, status=status, diagnostics=timeline)


__all__ = ["LedgerMaintenanceConfig", "LedgerMaintenanceOrchestrator"]
