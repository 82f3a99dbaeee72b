"""Shared timeline event helper utilities for job diagnostics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def domain_build_stage_event(
    stage: str,
    status: str,
    balance_account_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, object]:
    """Build one structured timeline event payload.

    Args:
        stage: Stage name.
        status: Stage status marker.
        balance_account_id: Optional account the stage operated on.
        details: Optional structured details object.

    Returns:
        dict[str, object]: Structured timeline event.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    event_payload: dict[str, object] = {
        "stage": stage,
        "status": status,
        "at_utc": datetime.now(timezone.utc).isoformat(),
    }
    if balance_account_id is not None:
        event_payload["balance_account_id"] = balance_account_id
    if details is not None:
        event_payload["details"] = details
    return event_payload
