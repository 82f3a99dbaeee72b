"""API router package for endpoint composition."""

from .errors import api_error_response, api_ledger_error_response
from .health import api_create_health_router
from .jobs import api_create_jobs_router
from .ledger import api_create_ledger_router
from .snapshot import api_create_snapshot_router

__all__ = [
	"api_create_health_router",
	"api_create_jobs_router",
	"api_create_ledger_router",
	"api_create_snapshot_router",
	"api_error_response",
	"api_ledger_error_response",
]
