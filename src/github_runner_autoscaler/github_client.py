# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""GitHub API client.

Only the just-in-time runner configuration endpoints of enterprises,
organizations and repositories are used.
"""
import functools
import logging
from typing import Callable, ParamSpec, TypeVar

import requests
from requests import RequestException
from typing_extensions import assert_never

from github_runner_autoscaler import constants
from github_runner_autoscaler.cloud.secrets import SecretManagerStore
from github_runner_autoscaler.configuration.sources import Source, SourceType
from github_runner_autoscaler.errors import JitConfigError, PlatformApiError, TokenError
from github_runner_autoscaler.types_.github import JITConfig

logger = logging.getLogger(__name__)

# Parameters of the function decorated with catch_http_errors
ParamT = ParamSpec("ParamT")
# Return type of the function decorated with catch_http_errors
ReturnT = TypeVar("ReturnT")


def catch_http_errors(func: Callable[ParamT, ReturnT]) -> Callable[ParamT, ReturnT]:
    """Catch HTTP errors and raise custom exceptions.

    Args:
        func: The target function to catch common errors for.

    Returns:
        The decorated function.
    """

    @functools.wraps(func)
    def wrapper(*args: ParamT.args, **kwargs: ParamT.kwargs) -> ReturnT:
        """Catch common errors when using the GitHub API.

        Args:
            args: Placeholder for positional arguments.
            kwargs: Placeholder for keyword arguments.

        Raises:
            PlatformApiError: If the GitHub API could not be reached.

        Returns:
            The decorated function.
        """
        try:
            return func(*args, **kwargs)
        except RequestException as exc:
            logger.error("GitHub runner jit-config request failed: %s", exc)
            raise PlatformApiError("failed jit-config response") from exc

    return wrapper


class GithubClient:
    """GitHub API client."""

    def __init__(self, secret_store: SecretManagerStore, api_url: str, timeout: float):
        """Instantiate the GitHub API client.

        Args:
            secret_store: Store of the GitHub personal access token.
            api_url: The GitHub REST API URL.
            timeout: Seconds to wait for a response.
        """
        self._secret_store = secret_store
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout

    def jit_config_url(self, source: Source) -> str:
        """Get the JIT config endpoint of a source.

        Args:
            source: The webhook source.

        Returns:
            The URL of the endpoint.
        """
        path: str
        if source.type == SourceType.ENTERPRISE:
            path = constants.ENTERPRISE_JIT_CONFIG_PATH
        elif source.type == SourceType.ORGANIZATION:
            path = constants.ORGANIZATION_JIT_CONFIG_PATH
        elif source.type == SourceType.REPOSITORY:
            path = constants.REPOSITORY_JIT_CONFIG_PATH
        else:
            assert_never(source.type)
        return self._api_url + path.format(name=source.name)

    @catch_http_errors
    def generate_jit_config(
        self, url: str, runner_name: str, runner_group_id: int, labels: list[str]
    ) -> str:
        """Generate a single-use runner registration.

        The request is never retried, the caller decides about retries.

        Args:
            url: The JIT config endpoint, see jit_config_url.
            runner_name: Name of the runner to register.
            runner_group_id: Runner group to register the runner in.
            labels: Labels of the runner.

        Raises:
            TokenError: If the token is invalid or lacks permissions.
            JitConfigError: If GitHub did not issue a JIT config.

        Returns:
            The encoded JIT config.
        """
        logger.debug(
            "About to request GitHub runner %s jit config from %s (runner group %d)",
            runner_name,
            url,
            runner_group_id,
        )
        token = self._secret_store.read_token()
        response = requests.post(
            url,
            json={
                "name": runner_name,
                "runner_group_id": runner_group_id,
                "labels": labels,
                "work_folder": constants.RUNNER_WORK_FOLDER,
            },
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": constants.GITHUB_API_VERSION,
                "User-Agent": constants.USER_AGENT,
            },
            timeout=self._timeout,
        )
        if response.status_code in (401, 403):
            logger.error("GitHub runner jit-config request unauthorized: %s", response.status_code)
            raise TokenError(
                "Invalid token."
                if response.status_code == 401
                else "Provided token has not enough permissions or has reached rate-limit."
            )
        if response.status_code != 201:
            logger.error(
                "GitHub runner jit-config request unsuccessful: %s %s",
                response.status_code,
                response.reason,
            )
            raise JitConfigError("failed jit-config response")
        try:
            payload: JITConfig = response.json()
        except ValueError as exc:
            logger.error("GitHub runner jit-config response missing: %s", exc)
            raise JitConfigError("failed jit-config response") from exc
        jit_config = payload.get("encoded_jit_config") if isinstance(payload, dict) else None
        if not isinstance(jit_config, str) or not jit_config:
            logger.error("GitHub runner jit-config is empty")
            raise JitConfigError("failed jit-config response")
        return jit_config
