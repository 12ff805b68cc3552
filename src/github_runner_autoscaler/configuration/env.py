# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Load the application configuration from environment variables."""

import base64
import binascii
import logging
from typing import Any, Mapping

from pydantic import ValidationError

from github_runner_autoscaler import constants
from github_runner_autoscaler.configuration.base import ApplicationConfiguration
from github_runner_autoscaler.configuration.sources import SourceType
from github_runner_autoscaler.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variable name -> (section, option) of the application configuration.
_OPTIONS = {
    "ROUTE_WEBHOOK": ("routes", "webhook"),
    "ROUTE_CREATE_VM": ("routes", "create_vm"),
    "ROUTE_DELETE_VM": ("routes", "delete_vm"),
    "PROJECT_ID": ("cloud", "project_id"),
    "ZONE": ("cloud", "zone"),
    "TASK_QUEUE": ("cloud", "task_queue"),
    "INSTANCE_TEMPLATE": ("cloud", "instance_template"),
    "SECRET_VERSION": ("cloud", "secret_version"),
    "RUNNER_PREFIX": ("runner", "prefix"),
    "RUNNER_GROUP_ID": ("runner", "group_id"),
    "RUNNER_SCRIPT_ATTRIBUTE": ("runner", "script_attribute"),
    "CREATE_VM_DELAY": ("callback", "delay"),
    "TASK_DISPATCH_TIMEOUT": ("callback", "dispatch_deadline"),
    "CALLBACK_BASE_URL": ("callback", "base_url"),
    "GITHUB_API_URL": ("github", "api_url"),
}
_MANDATORY = ("PROJECT_ID", "ZONE", "TASK_QUEUE", "INSTANCE_TEMPLATE", "SECRET_VERSION")


def _parse_source(value: str, source_type: SourceType) -> tuple[str, dict[str, str]] | None:
    """Parse a "<name>;<base64 secret>" source definition.

    Args:
        value: The source definition.
        source_type: The type of the source.

    Raises:
        ConfigurationError: If the secret is not valid base64.

    Returns:
        The source key and source configuration, None for an empty or incomplete definition.
    """
    parts = value.strip().split(";")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        if value.strip():
            logger.warning("Ignoring malformed %s source definition", source_type.value)
        return None
    name, encoded_secret = parts
    try:
        secret = base64.b64decode(encoded_secret, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Webhook secret of source {name} is not valid base64") from exc
    return name, {"name": name, "type": source_type.value, "secret": secret}


def _parse_sources(environ: Mapping[str, str]) -> dict[str, dict[str, str]]:
    """Parse the webhook sources.

    Args:
        environ: The environment variables.

    Returns:
        The source configurations by key.
    """
    definitions: list[tuple[str, SourceType]] = [
        (environ.get("GITHUB_ENTERPRISE", ""), SourceType.ENTERPRISE),
        (environ.get("GITHUB_ORG", ""), SourceType.ORGANIZATION),
    ]
    definitions.extend(
        (repo, SourceType.REPOSITORY) for repo in environ.get("GITHUB_REPOS", "").split(",")
    )
    sources: dict[str, dict[str, str]] = {}
    for value, source_type in definitions:
        if (parsed := _parse_source(value, source_type)) is None:
            continue
        key, source = parsed
        if key in sources:
            logger.warning("Found duplicate webhook source key - will be ignored: %s", key)
            continue
        sources[key] = source
    return sources


def _parse_labels(value: str) -> list[str]:
    """Parse the comma separated runner labels.

    Args:
        value: The labels.

    Raises:
        ConfigurationError: If no label is given.

    Returns:
        The non-empty labels.
    """
    labels = [label.strip() for label in value.split(",") if label.strip()]
    if not labels:
        raise ConfigurationError(
            "No workflow runner labels were provided. You should at least add the label "
            f'"{constants.DEFAULT_RUNNER_LABELS[0]}"'
        )
    return labels


def load_from_env(environ: Mapping[str, str]) -> ApplicationConfiguration:
    """Build the application configuration from environment variables.

    Args:
        environ: The environment variables, usually os.environ.

    Raises:
        ConfigurationError: If a mandatory variable is missing or a value is invalid.

    Returns:
        The configuration.
    """
    if missing := [name for name in _MANDATORY if not environ.get(name)]:
        raise ConfigurationError(
            f"Mandatory environment variables not found: {', '.join(missing)}"
        )

    config: dict[str, Any] = {
        section: {} for section in ("routes", "cloud", "runner", "callback", "github")
    }
    for name, (section, option) in _OPTIONS.items():
        if value := environ.get(name):
            config[section][option] = value
    if "RUNNER_LABELS" in environ:
        config["runner"]["labels"] = _parse_labels(environ["RUNNER_LABELS"])
    if query_param := environ.get("SOURCE_QUERY_PARAM_NAME"):
        config["source_query_param"] = query_param
    config["simulate"] = environ.get("SIMULATE", "0") == "1"
    config["sources"] = _parse_sources(environ)

    try:
        return ApplicationConfiguration.model_validate(config)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
