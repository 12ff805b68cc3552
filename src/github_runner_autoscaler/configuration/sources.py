# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Module containing the registered webhook sources."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from github_runner_autoscaler.constants import REPOSITORY_RUNNER_GROUP_ID

logger = logging.getLogger(__name__)


class SourceType(str, Enum):
    """The kind of GitHub entity emitting webhooks.

    Attributes:
        ENTERPRISE: A GitHub enterprise.
        ORGANIZATION: A GitHub organization.
        REPOSITORY: A GitHub repository in the format <owner>/<repo>.
    """

    ENTERPRISE = "enterprise"
    ORGANIZATION = "organization"
    REPOSITORY = "repository"


@dataclass(frozen=True)
class Source:
    """A webhook emitting GitHub entity.

    Attributes:
        key: The registry key, carried as query parameter on every request.
        name: The name of the enterprise, organization or repository.
        type: The type of the source.
        secret: The HMAC secret shared with GitHub for the webhook.
    """

    key: str
    name: str
    type: SourceType
    secret: bytes = field(repr=False)

    def expected_runner_group_id(self, configured_group_id: int) -> int:
        """Get the runner group the runners of this source are registered in.

        Args:
            configured_group_id: The runner group id of the application configuration.

        Returns:
            The runner group id, which is always the default group for repositories.
        """
        if self.type == SourceType.REPOSITORY:
            return REPOSITORY_RUNNER_GROUP_ID
        return configured_group_id


class SourceRegistry(Mapping[str, Source]):
    """Read-only mapping of source key to the registered source.

    The registry is built once at startup and never changes afterwards.
    """

    def __init__(self, sources: Iterable[Source] = ()):
        """Construct the object.

        Duplicate keys are logged and ignored, the first registration wins.

        Args:
            sources: The sources to register.
        """
        registered: dict[str, Source] = {}
        for source in sources:
            if source.key in registered:
                logger.warning(
                    "Found duplicate webhook source key - will be ignored: %s", source.key
                )
                continue
            registered[source.key] = source
            logger.info("Registered webhook %s source: %s", source.type.value, source.key)
        self._sources = MappingProxyType(registered)

    def __getitem__(self, key: str) -> Source:
        """Get a source by key.

        Args:
            key: The source key.

        Returns:
            The registered source.
        """
        return self._sources[key]

    def __iter__(self) -> Iterator[str]:
        """Iterate over the source keys.

        Returns:
            Iterator over the keys.
        """
        return iter(self._sources)

    def __len__(self) -> int:
        """Get the number of registered sources.

        Returns:
            The number of sources.
        """
        return len(self._sources)
