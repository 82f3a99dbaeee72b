"""Job trigger router composition for scheduled ledger maintenance."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.jobs import JobOrchestratorPort

from .errors import api_error_response


def api_create_jobs_router(maintenance_orchestrator: JobOrchestratorPort) -> APIRouter:
    """Create router that triggers ledger maintenance jobs on demand.

    Args:
        maintenance_orchestrator: Job orchestrator for recompute, snapshot and reconcile runs.

    Returns:
        APIRouter: Router exposing `/jobs` endpoints.

    Raises:
        ValueError: Raised when orchestrator is invalid.
    """

    if maintenance_orchestrator is None:
        raise ValueError("maintenance_orchestrator must not be None")

    router = APIRouter(prefix="/jobs", tags=["jobs"])

    @router.get("")
    def api_job_list() -> JSONResponse:
        """List supported job names."""

        payload = {"items": list(maintenance_orchestrator.job_supported_names())}
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/{job_name}/run")
    def api_job_run_trigger(job_name: str) -> JSONResponse:
        """Trigger one maintenance job over the configured accounts.

        Args:
            job_name: Supported job name.

        Returns:
            JSONResponse: Execution result with diagnostics timeline.

        Raises:
            RuntimeError: Raised when execution fails unexpectedly.
        """

        if job_name not in maintenance_orchestrator.job_supported_names():
            return api_error_response("UNSUPPORTED_JOB", f"unsupported job_name={job_name}", status.HTTP_404_NOT_FOUND)

        execution_result = maintenance_orchestrator.job_execute(job_name=job_name)
        payload = {
            "job_name": execution_result.job_name,
            "status": execution_result.status,
            "diagnostics": execution_result.diagnostics,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router
