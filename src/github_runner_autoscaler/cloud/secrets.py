# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Access to the GitHub credential stored in Secret Manager."""

import logging

from google.api_core import exceptions as google_exceptions
from google.cloud.secretmanager import SecretManagerServiceClient

from github_runner_autoscaler.errors import CredentialError

logger = logging.getLogger(__name__)


class SecretManagerStore:  # pylint: disable=too-few-public-methods
    """Read a secret version from Secret Manager."""

    def __init__(
        self,
        secret_version: str,
        request_timeout: float,
        client: SecretManagerServiceClient | None = None,
    ):
        """Construct the object.

        Args:
            secret_version: Full path of the version, projects/<id>/secrets/<name>/versions/<v>.
            request_timeout: Seconds to wait for the secret.
            client: The Secret Manager client to use.
        """
        self._secret_version = secret_version
        self._request_timeout = request_timeout
        self._client = client if client is not None else SecretManagerServiceClient()

    def read_token(self) -> str:
        """Read the GitHub personal access token.

        The Secret Manager error is only logged, callers get a generic error.

        Raises:
            CredentialError: If the secret cannot be read or is empty.

        Returns:
            The token.
        """
        logger.debug("About to read PAT from secret version: %s", self._secret_version)
        try:
            response = self._client.access_secret_version(
                name=self._secret_version, timeout=self._request_timeout
            )
        except google_exceptions.GoogleAPIError as exc:
            logger.error(
                "Could not access GitHub PAT secret version %s: %s", self._secret_version, exc
            )
            raise CredentialError("missing GitHub PAT") from None
        try:
            token = response.payload.data.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.error("The GitHub PAT secret is not valid UTF-8")
            raise CredentialError("invalid GitHub PAT") from None
        if not token:
            logger.error("The GitHub PAT secret is empty")
            raise CredentialError("empty GitHub PAT")
        return token
