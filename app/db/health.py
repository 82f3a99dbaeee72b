"""Database health service implementations for connectivity and schema checks."""

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from app.domain import HealthStatus

from .interfaces import DatabaseHealthPort

_REQUIRED_TABLES = ("balance_ledger_entry", "balance_snapshot_daily")


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service backed by SQLAlchemy engine connectivity checks."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL with the password masked."""

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Verify connectivity and that ledger tables are migrated.

        Returns:
            HealthStatus: `ok` when every ledger table exists, `degraded` otherwise.

        Raises:
            ConnectionError: Raised when connectivity check fails.
        """

        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                missing_tables = [
                    table_name
                    for table_name in _REQUIRED_TABLES
                    if connection.execute(
                        text("SELECT to_regclass(:table_name) IS NOT NULL AS table_exists"),
                        {"table_name": table_name},
                    ).scalar()
                    is not True
                ]
        except SQLAlchemyError as error:
            raise ConnectionError("database connectivity check failed") from error

        if missing_tables:
            return HealthStatus(
                status="degraded",
                detail=f"ledger tables missing: {', '.join(missing_tables)}; run alembic upgrade head",
            )
        return HealthStatus(status="ok", detail="database connectivity and ledger schema verified")
