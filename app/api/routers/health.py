"""Health endpoint router composition for app, database and ledger schema checks."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.db import DatabaseHealthPort


def api_create_health_router(db_health_service: DatabaseHealthPort, environment_name: str = "development") -> APIRouter:
    """Create health-check router with app, database and schema status.

    Args:
        db_health_service: DB-layer health service interface.
        environment_name: Runtime environment label echoed in payloads.

    Returns:
        APIRouter: Router exposing `/health` endpoint.

    Raises:
        ValueError: Raised when db_health_service is invalid.
    """

    if db_health_service is None:
        raise ValueError("db_health_service must not be None")

    router = APIRouter(tags=["health"])

    @router.get("/health")
    def api_health_status() -> JSONResponse:
        """Return application, database and ledger schema health.

        Returns:
            JSONResponse: 200 when the ledger schema is ready, 503 otherwise.

        Raises:
            RuntimeError: Raised if the health payload cannot be produced.
        """

        target = db_health_service.db_connection_label()
        try:
            db_health = db_health_service.db_check_health()
        except ConnectionError as error:
            payload = {
                "status": "degraded",
                "app": "up",
                "database": "down",
                "detail": str(error),
                "environment": environment_name,
                "target": target,
            }
            return JSONResponse(content=payload, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

        ready = db_health.status == "ok"
        payload = {
            "status": "ok" if ready else "degraded",
            "app": "up",
            "database": db_health.status,
            "detail": db_health.detail,
            "environment": environment_name,
            "target": target,
        }
        return JSONResponse(
            content=payload,
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return router
