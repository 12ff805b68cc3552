# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Unit test setups and configurations."""

from unittest.mock import MagicMock

import pytest

from github_runner_autoscaler.configuration import ApplicationConfiguration, SourceRegistry
from github_runner_autoscaler.configuration.sources import Source, SourceType
from tests.unit.factories.github_factory import SourceFactory


@pytest.fixture(name="org_source")
def org_source_fixture() -> Source:
    return SourceFactory(key="canonical", name="canonical")


@pytest.fixture(name="repo_source")
def repo_source_fixture() -> Source:
    return SourceFactory(
        key="canonical/runner", name="canonical/runner", type=SourceType.REPOSITORY
    )


@pytest.fixture(name="registry")
def registry_fixture(org_source: Source, repo_source: Source) -> SourceRegistry:
    return SourceRegistry([org_source, repo_source])


@pytest.fixture(name="app_config")
def app_config_fixture() -> ApplicationConfiguration:
    return ApplicationConfiguration.model_validate(
        {
            "cloud": {
                "project_id": "test-project",
                "zone": "europe-west1-b",
                "task_queue": "projects/test-project/locations/europe-west1/queues/runners",
                "instance_template": "projects/test-project/global/instanceTemplates/runner",
                "secret_version": "projects/test-project/secrets/github-pat/versions/latest",
            },
            "runner": {"labels": ["self-hosted", "linux"]},
            "sources": {
                "canonical": {"name": "canonical", "type": "organization", "secret": "secret"},
            },
        }
    )


@pytest.fixture(name="operation_mock")
def operation_mock_fixture() -> MagicMock:
    """Mock of a finished Compute Engine operation."""
    operation = MagicMock()
    operation.result.return_value = None
    return operation
