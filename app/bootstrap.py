"""Application bootstrap wiring for startup validation and dependency assembly."""

from fastapi import FastAPI

from app.api import create_api_application
from app.config import AppSettings, config_load_settings, config_setup_logging
from app.db import SQLAlchemyBalanceLedgerService, SQLAlchemyDatabaseHealthService, db_create_engine
from app.jobs import LedgerMaintenanceConfig, LedgerMaintenanceOrchestrator
from app.ledger import BalanceLedgerService


def bootstrap_create_ledger_service(settings: AppSettings) -> tuple[SQLAlchemyBalanceLedgerService, BalanceLedgerService]:
    """Build the database repository and the ledger service over it.

    Args:
        settings: Validated runtime settings.

    Returns:
        tuple[SQLAlchemyBalanceLedgerService, BalanceLedgerService]: Repository and service.

    Raises:
        ValueError: Raised when settings values are invalid.
    """

    engine = db_create_engine(database_url=settings.database_url)
    ledger_repository = SQLAlchemyBalanceLedgerService(engine=engine)
    ledger_service = BalanceLedgerService(
        repository=ledger_repository,
        report_timezone_name=settings.ledger_report_timezone,
    )
    return ledger_repository, ledger_service


def bootstrap_create_maintenance_orchestrator(
    settings: AppSettings,
    ledger_service: BalanceLedgerService,
    balance_account_ids: list[str] | None = None,
) -> LedgerMaintenanceOrchestrator:
    """Build the ledger maintenance orchestrator.

    Args:
        settings: Validated runtime settings.
        ledger_service: Balance ledger service.
        balance_account_ids: Optional explicit accounts overriding configured ones.

    Returns:
        LedgerMaintenanceOrchestrator: Orchestrator for scheduled jobs.

    Raises:
        ValueError: Raised when configuration values are invalid.
    """

    return LedgerMaintenanceOrchestrator(
        ledger_service=ledger_service,
        config=LedgerMaintenanceConfig(
            balance_account_ids=tuple(balance_account_ids or settings.config_maintenance_account_ids()),
            snapshot_lookback_days=settings.ledger_snapshot_lookback_days,
            report_timezone_name=settings.ledger_report_timezone,
        ),
    )


def bootstrap_create_application() -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = config_load_settings()
    config_setup_logging(settings.log_level)
    engine = db_create_engine(database_url=settings.database_url)
    db_health_service = SQLAlchemyDatabaseHealthService(engine=engine)
    ledger_repository = SQLAlchemyBalanceLedgerService(engine=engine)
    ledger_service = BalanceLedgerService(
        repository=ledger_repository,
        report_timezone_name=settings.ledger_report_timezone,
    )
    return create_api_application(
        settings=settings,
        db_health_service=db_health_service,
        ledger_repository=ledger_repository,
        ledger_service=ledger_service,
        maintenance_orchestrator=bootstrap_create_maintenance_orchestrator(settings, ledger_service),
    )
