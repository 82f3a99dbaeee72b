"""Main module entrypoint for local runtime execution.

This module validates startup configuration and either launches the FastAPI
service or runs one ledger maintenance job.
"""

import argparse
import json

import uvicorn

from app.bootstrap import (
    bootstrap_create_application,
    bootstrap_create_ledger_service,
    bootstrap_create_maintenance_orchestrator,
)
from app.config import config_load_settings, config_setup_logging

_JOB_NAME_BY_COMMAND = {
    "recompute-run": "recompute_run",
    "snapshot-run": "snapshot_run",
    "reconcile-run": "reconcile_run",
}


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with code 1 when a job finishes with `failed`.
    """

    argument_parser = argparse.ArgumentParser(description="Balance ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", *_JOB_NAME_BY_COMMAND),
        help="Runtime command: `api` starts server, `recompute-run` rewrites running balances, "
        "`snapshot-run` rebuilds daily snapshots, `reconcile-run` reports one-sided transfers",
        type=str,
    )
    argument_parser.add_argument(
        "--balance-account-id",
        dest="balance_account_ids",
        action="append",
        default=None,
        help="Balance account to process; repeatable. Defaults to LEDGER_MAINTENANCE_ACCOUNT_IDS",
    )
    argument_parser.add_argument(
        "--date",
        dest="snapshot_date",
        type=str,
        help="Last snapshot day in YYYY-MM-DD format for `snapshot-run`; defaults to today",
    )
    parsed_arguments = argument_parser.parse_args()

    settings = config_load_settings()
    config_setup_logging(settings.log_level)

    if parsed_arguments.command in _JOB_NAME_BY_COMMAND:
        _, ledger_service = bootstrap_create_ledger_service(settings)
        orchestrator = bootstrap_create_maintenance_orchestrator(
            settings,
            ledger_service,
            balance_account_ids=parsed_arguments.balance_account_ids,
        )
        job_name = _JOB_NAME_BY_COMMAND[parsed_arguments.command]
        if job_name == orchestrator.SNAPSHOT_JOB_NAME and parsed_arguments.snapshot_date:
            execution_result = orchestrator.job_execute_snapshot(
                orchestrator.job_configured_account_ids(),
                date_to=parsed_arguments.snapshot_date,
            )
        else:
            execution_result = orchestrator.job_execute(job_name)
        print(json.dumps({"job_name": execution_result.job_name, "status": execution_result.status}))
        if execution_result.status != "success":
            raise SystemExit(1)
        return

    application = bootstrap_create_application()
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
