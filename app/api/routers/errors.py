"""Error payload helpers shared by ledger API routers."""

from fastapi import status
from fastapi.responses import JSONResponse

from app.db import LedgerConcurrentModificationError, LedgerPersistenceError


def api_error_response(code: str, message: str, status_code: int) -> JSONResponse:
    """Build the standard error envelope.

    Args:
        code: Stable machine-readable error code.
        message: Human-readable error message.
        status_code: HTTP status code.

    Returns:
        JSONResponse: Error envelope response.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    payload = {
        "status": "error",
        "code": code,
        "message": message,
    }
    return JSONResponse(content=payload, status_code=status_code)


def api_ledger_error_response(error: Exception) -> JSONResponse:
    """Map ledger validation and persistence errors to error envelopes.

    Args:
        error: Raised `ValueError` or `LedgerPersistenceError`.

    Returns:
        JSONResponse: 400, 409 or 500 error envelope.

    Raises:
        Exception: Re-raises errors outside the mapped taxonomy.
    """

    if isinstance(error, LedgerConcurrentModificationError):
        return api_error_response("LEDGER_CONCURRENT_MODIFICATION", str(error), status.HTTP_409_CONFLICT)
    if isinstance(error, LedgerPersistenceError):
        return api_error_response("LEDGER_PERSISTENCE_FAILED", str(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if isinstance(error, ValueError):
        return api_error_response("INVALID_REQUEST", str(error), status.HTTP_400_BAD_REQUEST)
    raise error


__all__ = ["api_error_response", "api_ledger_error_response"]
