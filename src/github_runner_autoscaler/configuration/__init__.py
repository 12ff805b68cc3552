# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Module containing application configuration for the github_runner_autoscaler."""

from github_runner_autoscaler.configuration.base import (  # noqa: F401
    ApplicationConfiguration,
    CallbackConfig,
    GitHubConfig,
    GoogleCloudConfig,
    RoutesConfig,
    RunnerConfig,
    SourceConfig,
)
from github_runner_autoscaler.configuration.env import load_from_env  # noqa: F401
from github_runner_autoscaler.configuration.sources import (  # noqa: F401
    Source,
    SourceRegistry,
    SourceType,
)
