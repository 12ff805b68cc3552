# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""The CLI entrypoint for github-runner-autoscaler application."""

import importlib.metadata
import logging
import os
import sys
from typing import TextIO

import click
from google.cloud.logging.handlers import StructuredLogHandler, setup_logging

from github_runner_autoscaler.configuration import ApplicationConfiguration, load_from_env
from github_runner_autoscaler.http_server import FlaskArgs, start_http_server
from github_runner_autoscaler.service import Autoscaler

version = importlib.metadata.version("github-runner-autoscaler")


def _configure_logging(log_level: str) -> None:  # pragma: no cover
    """Configure the root logger.

    On Cloud Run the logs are written as structured JSON lines.

    Args:
        log_level: The log level.
    """
    if "K_SERVICE" in os.environ:
        setup_logging(handler=StructuredLogHandler(), log_level=logging.getLevelName(log_level))
        return
    logging.basicConfig(
        level=log_level,
        stream=sys.stderr,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


@click.command()
@click.option(
    "--config-file",
    type=click.File(mode="r", encoding="utf-8"),
    default=None,
    help="The file path containing the configurations. Environment variables are used if unset.",
)
@click.option(
    "--host",
    type=str,
    help="The hostname to listen on for the HTTP server.",
    default="0.0.0.0",  # nosec B104
)
@click.option(
    "--port",
    type=int,
    envvar="PORT",
    help="The port to listen on for the HTTP server.",
    default=8080,
)
@click.option(
    "--debug",
    is_flag=True,
    show_default=True,
    default=False,
    help="Debug mode for testing.",
)
@click.option(
    "--log-level",
    type=click.Choice(
        [
            "CRITICAL",
            "FATAL",
            "ERROR",
            "WARNING",
            "INFO",
            "DEBUG",
        ]
    ),
    default="INFO",
    help="The log level for the application.",
)
# The entry point for the CLI will be tested with integration test.
def main(
    config_file: TextIO | None,
    host: str,
    port: int,
    debug: bool,
    log_level: str,
) -> None:  # pragma: no cover
    """Start the autoscaler HTTP server.

    Args:
        config_file: The configuration file.
        host: The hostname to listen on for the HTTP server
        port: The port to listen on the HTTP server.
        debug: Whether to start the application in debug mode.
        log_level: The log level.
    """
    if os.environ.get("DEBUG") == "1":
        log_level = "DEBUG"
    _configure_logging(log_level)
    logging.info("Starting GitHub runner autoscaler version: %s", version)

    if config_file is not None:
        config = ApplicationConfiguration.from_yaml_file(config_file)
    else:
        config = load_from_env(os.environ)
    autoscaler = Autoscaler.build(config)

    logging.info(
        'Starting autoscaler on port %d observing workflow jobs with labels "%s"',
        port,
        ", ".join(config.runner.labels),
    )
    start_http_server(config, autoscaler, FlaskArgs(host=host, port=port, debug=debug))
