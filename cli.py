"""Business Card Deploy CLI.

business-card-deploy run --workspace .
business-card-deploy serve --config config.yaml --port 8000
"""

import logging
import os
import sys

import click

from action_status import ActionStatus
from config import load_config
from deploy_pipeline import run as run_pipeline
from logging_config import setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version="1.0.0")
def main():
    """Build the business card page and publish it to the deploy branch."""


@main.command()
@click.option("--workspace", type=click.Path(file_okay=False), default=".",
              help="Directory holding data.json (and optionally CNAME)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              envvar="CONFIG_PATH", help="Optional YAML file with input defaults")
@click.option("--debug", is_flag=True, envvar="RUNNER_DEBUG", help="Verbose logs, including command output")
@click.option("--log-db", default=None, envvar="LOG_DB_PATH", help="SQLite file keeping a history of runs")
def run(workspace, config_path, debug, log_db):
    """Run the deploy as a CI step. Inputs are read from INPUT_* environment variables."""
    setup_logging(debug=debug)

    status = ActionStatus()
    outcome = run_pipeline(workspace=workspace, status=status, config_path=config_path, log_db=log_db)
    outcome.settle()
    sys.exit(status.exit_code)


@main.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
              envvar="CONFIG_PATH", help="YAML service configuration (default: config.yaml)")
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--debug", is_flag=True)
def serve(config_path, host, port, debug):
    """Serve the push webhook and manual deploy endpoints."""
    import uvicorn

    if config_path:
        os.environ["CONFIG_PATH"] = config_path
    service_config = load_config(required=True)
    setup_logging(debug=debug or bool(service_config.get("debug")), db_path=service_config.get("log_db_path"))
    if not service_config.get("repository"):
        raise click.ClickException("`repository` (owner/repo allowed to deploy) must be set in the service config.")
    if not service_config.get("github_webhook_secret"):
        logger.warning("github_webhook_secret is not set. POST /webhook will reject every request.")
    logger.info("Starting the Business Card Deploy service...")

    from main import app
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
