"""Typed interfaces for job-layer orchestration responsibilities."""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class JobExecutionResult:
    """Result contract for ledger maintenance job execution.

    Attributes:
        job_name: Job identifier.
        status: Final execution state (`success` or `failed`).
        diagnostics: Structured stage timeline recorded during execution.
    """

    job_name: str
    status: str
    diagnostics: list[dict[str, object]] = field(default_factory=list)


class JobOrchestratorPort(Protocol):
    """Port definition for orchestrating scheduled ledger maintenance jobs."""

    def job_supported_names(self) -> tuple[str, ...]:
        """Return the set of workflow names this orchestrator can execute.

        Returns:
            tuple[str, ...]: Deterministic list of supported job names.

        Raises:
            RuntimeError: Raised when supported job metadata is unavailable.
        """

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Execute one named workflow in the job layer.

        Args:
            job_name: Workflow name.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            ValueError: Raised when job name is unsupported.
        """
