# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Base configuration for the Application."""

from typing import Optional, TextIO

import yaml
from pydantic import AnyHttpUrl, BaseModel, Field, NonNegativeFloat, ValidationError

from github_runner_autoscaler import constants
from github_runner_autoscaler.configuration.sources import Source, SourceRegistry, SourceType
from github_runner_autoscaler.errors import ConfigurationError


class RoutesConfig(BaseModel):
    """The HTTP paths the application listens on.

    Attributes:
        webhook: Path receiving the GitHub webhooks.
        create_vm: Path receiving the create-vm callback tasks.
        delete_vm: Path receiving the delete-vm callback tasks.
    """

    webhook: str = Field("/webhook", pattern="^/")
    create_vm: str = Field("/create_vm", pattern="^/")
    delete_vm: str = Field("/delete_vm", pattern="^/")


class GoogleCloudConfig(BaseModel):
    """Google Cloud resources used by the application.

    Attributes:
        project_id: The project to spawn the instances in.
        zone: The zone to spawn the instances in.
        task_queue: Full path of the Cloud Tasks queue for the callbacks.
        instance_template: Full path of the instance template for the runners.
        secret_version: Full path of the secret version holding the GitHub PAT.
        operation_timeout: Seconds to wait for a Compute Engine operation to finish.
        request_timeout: Seconds to wait for other Google API requests.
    """

    project_id: str = Field(min_length=1)
    zone: str = Field(min_length=1)
    task_queue: str = Field(min_length=1)
    instance_template: str = Field(min_length=1)
    secret_version: str = Field(min_length=1)
    operation_timeout: float = Field(300, gt=0)
    request_timeout: float = Field(30, gt=0)


class RunnerConfig(BaseModel):
    """Configuration of the spawned runners.

    Attributes:
        prefix: Prefix of the instance and runner names.
        group_id: Runner group for enterprise and organization runners.
        labels: Labels a job needs to request to get a runner.
        script_attribute: Project metadata attribute holding the runner registration script.
    """

    prefix: str = Field(
        constants.DEFAULT_RUNNER_PREFIX,
        pattern="^[a-z][-a-z0-9]*$",
        max_length=constants.RUNNER_PREFIX_MAX_LENGTH,
    )
    group_id: int = Field(1, ge=1)
    labels: list[str] = Field(
        default_factory=lambda: list(constants.DEFAULT_RUNNER_LABELS), min_length=1
    )
    script_attribute: str = constants.DEFAULT_RUNNER_SCRIPT_ATTRIBUTE


class CallbackConfig(BaseModel):
    """Configuration of the callback tasks.

    Attributes:
        delay: Seconds between scheduling and dispatching a callback.
        dispatch_deadline: Seconds the queue waits for a callback response.
        base_url: Public URL of the application. Derived from the webhook request if unset.
    """

    delay: NonNegativeFloat = constants.DEFAULT_CALLBACK_DELAY_SECONDS
    # Cloud Tasks accepts HTTP dispatch deadlines between 15 seconds and 30 minutes.
    dispatch_deadline: int = Field(constants.DEFAULT_DISPATCH_DEADLINE_SECONDS, ge=15, le=1800)
    base_url: Optional[AnyHttpUrl] = None


class GitHubConfig(BaseModel):
    """Configuration of the GitHub API access.

    Attributes:
        api_url: The GitHub REST API URL.
        request_timeout: Seconds to wait for a GitHub API response.
    """

    api_url: AnyHttpUrl = Field(constants.GITHUB_API_URL, validate_default=True)
    request_timeout: float = Field(30, gt=0)


class SourceConfig(BaseModel):
    """A webhook source.

    Attributes:
        name: Enterprise, organization or repository (<owner>/<repo>) name.
        type: The type of the source.
        secret: The webhook secret.
    """

    name: str = Field(min_length=1)
    type: SourceType
    secret: str = Field(min_length=1, repr=False)


class ApplicationConfiguration(BaseModel):
    """Main entry point for the Application Configuration.

    Attributes:
        source_query_param: Query parameter carrying the source key.
        simulate: Log instead of creating and deleting instances.
        routes: The HTTP paths.
        cloud: Google Cloud configuration.
        runner: Runner configuration.
        callback: Callback task configuration.
        github: GitHub API configuration.
        sources: Webhook sources by key.
    """

    source_query_param: str = Field(constants.DEFAULT_SOURCE_QUERY_PARAM, min_length=1)
    simulate: bool = False
    routes: RoutesConfig = Field(default_factory=RoutesConfig)
    cloud: GoogleCloudConfig
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    callback: CallbackConfig = Field(default_factory=CallbackConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    sources: dict[str, SourceConfig] = Field(default_factory=dict)

    @staticmethod
    def from_yaml_file(file: TextIO) -> "ApplicationConfiguration":
        """Initialize configuration from a YAML formatted file.

        Args:
            file: The file object to parse the configuration from.

        Raises:
            ConfigurationError: If the configuration is invalid.

        Returns:
            The configuration.
        """
        config = yaml.safe_load(file)
        try:
            return ApplicationConfiguration.model_validate(config)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def source_registry(self) -> SourceRegistry:
        """Build the registry of the configured webhook sources.

        Returns:
            The source registry.
        """
        return SourceRegistry(
            Source(
                key=key,
                name=source.name,
                type=source.type,
                secret=source.secret.encode("utf-8"),
            )
            for key, source in self.sources.items()
        )
