"""FastAPI application factory for the balance ledger service.

This module composes the operational API surface: health, ledger entry reads,
recompute triggers, snapshot reads and rebuilds, and maintenance job triggers.
"""

from fastapi import FastAPI

from app.config import AppSettings
from app.db import BalanceLedgerRepositoryPort, DatabaseHealthPort
from app.jobs import JobOrchestratorPort
from app.ledger import BalanceLedgerService

from .routers import (
    api_create_health_router,
    api_create_jobs_router,
    api_create_ledger_router,
    api_create_snapshot_router,
)


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    ledger_repository: BalanceLedgerRepositoryPort,
    ledger_service: BalanceLedgerService,
    maintenance_orchestrator: JobOrchestratorPort | None = None,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        ledger_repository: Balance ledger repository for list APIs.
        ledger_service: Balance ledger service for recompute, snapshot and reconciliation APIs.
        maintenance_orchestrator: Optional job orchestrator exposed under `/jobs`.

    Returns:
        FastAPI: Framework application instance.

    Raises:
        ValueError: Raised when a required dependency is missing.
    """
    application = FastAPI(title="Balance Ledger")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return a minimal service descriptor.

        Returns:
            dict[str, str]: Service name, status and environment.

        Raises:
            RuntimeError: Raised if route handler cannot produce a response.
        """

        return {
            "service": "balance-ledger",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(
        api_create_health_router(
            db_health_service=db_health_service,
            environment_name=settings.environment_name,
        )
    )
    application.include_router(
        api_create_ledger_router(
            settings=settings,
            ledger_repository=ledger_repository,
            ledger_service=ledger_service,
        )
    )
    application.include_router(
        api_create_snapshot_router(
            settings=settings,
            snapshot_repository=ledger_repository,
            ledger_service=ledger_service,
        )
    )
    if maintenance_orchestrator is not None:
        application.include_router(api_create_jobs_router(maintenance_orchestrator=maintenance_orchestrator))

    return application
