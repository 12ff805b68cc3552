# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Errors used by the autoscaler."""
from __future__ import annotations


class AuthenticationError(Exception):
    """Represents a request with a missing, malformed or mismatching signature."""


class MalformedRequestError(Exception):
    """Represents a request that cannot be processed, e.g. a missing query parameter."""


class UnknownSourceError(Exception):
    """Represents a request for a webhook source that is not registered."""


class ConfigurationError(Exception):
    """Represents an invalid or incomplete application configuration."""


class CredentialError(Exception):
    """Represents an error when the GitHub credential cannot be read."""


class PlatformClientError(Exception):
    """Base class for all github client errors."""


class PlatformApiError(PlatformClientError):
    """Represents an error when the GitHub API returns an error."""


class TokenError(PlatformApiError):
    """Represents an error when the token is invalid or has not enough permissions."""


class JitConfigError(PlatformApiError):
    """Represents an error when GitHub did not issue a JIT runner configuration."""


class CloudError(Exception):
    """Base class for cloud (as e.g. Compute Engine) errors."""


class ComputeError(CloudError):
    """Represents an error while managing a Compute Engine instance."""


class InstanceNotFoundError(ComputeError):
    """Represents an instance which does not exist."""


class TaskQueueError(CloudError):
    """Represents an error while submitting a callback task to the queue."""
