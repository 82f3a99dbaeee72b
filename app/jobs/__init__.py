"""Job layer package for scheduled ledger maintenance orchestration."""

from .interfaces import JobExecutionResult, JobOrchestratorPort
from .ledger_maintenance import LedgerMaintenanceConfig, LedgerMaintenanceOrchestrator

__all__ = [
	"JobExecutionResult",
	"JobOrchestratorPort",
	"LedgerMaintenanceConfig",
	"LedgerMaintenanceOrchestrator",
]
