# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Verification of the HMAC signatures of webhooks and callbacks.

GitHub signs every webhook body with the secret of the webhook. The callback
tasks created by the application are signed with the very same per-source
secret, so both legs are authenticated by the same verifier.
"""

import hashlib
import hmac
import logging
import re
from dataclasses import dataclass

from github_runner_autoscaler.configuration.sources import Source, SourceRegistry
from github_runner_autoscaler.constants import (
    SIGNATURE_HEADER_LENGTH,
    SIGNATURE_PREFIX,
)
from github_runner_autoscaler.errors import (
    AuthenticationError,
    MalformedRequestError,
    UnknownSourceError,
)

logger = logging.getLogger(__name__)

_HEX_DIGEST_PATTERN = re.compile("[0-9a-f]{64}")


def calculate_signature(secret: bytes, body: bytes) -> str:
    """Calculate the HMAC-SHA256 hex digest of a body.

    Args:
        secret: The HMAC key.
        body: The raw body.

    Returns:
        The lowercase hex digest.
    """
    return hmac.new(secret, body, hashlib.sha256).hexdigest()


def build_signature_header(secret: bytes, body: bytes) -> str:
    """Build the signature header value for a body.

    Args:
        secret: The HMAC key.
        body: The raw body.

    Returns:
        The header value in the format sha256=<hex digest>.
    """
    return SIGNATURE_PREFIX + calculate_signature(secret, body)


def is_valid_signature_header(signature: str | None) -> bool:
    """Check the format of a signature header value.

    Args:
        signature: The header value.

    Returns:
        Whether the value has the format sha256=<64 lowercase hex characters>.
    """
    return (
        signature is not None
        and len(signature) == SIGNATURE_HEADER_LENGTH
        and signature.startswith(SIGNATURE_PREFIX)
        and _HEX_DIGEST_PATTERN.fullmatch(signature[len(SIGNATURE_PREFIX) :]) is not None
    )


def verify_signature(secret: bytes, body: bytes, signature: str) -> bool:
    """Verify the signature header value of a body.

    Args:
        secret: The HMAC key.
        body: The raw body.
        signature: The signature header value.

    Returns:
        Whether the signature matches.
    """
    if not is_valid_signature_header(signature):
        return False
    return hmac.compare_digest(
        calculate_signature(secret, body), signature[len(SIGNATURE_PREFIX) :]
    )


@dataclass(frozen=True)
class VerifiedRequest:
    """A request with a verified signature.

    Attributes:
        body: The raw body, read exactly once.
        source: The source that signed the body.
    """

    body: bytes
    source: Source


class SignatureVerifier:  # pylint: disable=too-few-public-methods
    """Verify signed requests against the secret of the registered source."""

    def __init__(self, registry: SourceRegistry, source_query_param: str):
        """Construct the object.

        Args:
            registry: The registered webhook sources.
            source_query_param: Name of the query parameter carrying the source key.
        """
        self._registry = registry
        self._source_query_param = source_query_param

    def verify(
        self, body: bytes, signature: str | None, source_key: str | None, remote: str = ""
    ) -> VerifiedRequest:
        """Verify the signature of a request.

        Args:
            body: The raw request body.
            signature: The signature header value.
            source_key: The value of the source query parameter.
            remote: The remote address, for logging.

        Raises:
            AuthenticationError: The signature is missing, malformed or does not match.
            MalformedRequestError: The source query parameter is missing.
            UnknownSourceError: The source is not registered.

        Returns:
            The verified request.
        """
        if not is_valid_signature_header(signature):
            logger.warning("%s did not provide a signature", remote)
            raise AuthenticationError("unauthorized")
        if source_key is None:
            logger.error("Missing %s query parameter", self._source_query_param)
            raise MalformedRequestError(f"missing {self._source_query_param} query parameter")
        source = self._registry.get(source_key)
        if source is None:
            logger.info("Source with name %s not registered - ignoring", source_key)
            raise UnknownSourceError(f"unknown webhook source {source_key}")
        # The format check above guarantees the signature is a str.
        if not verify_signature(source.secret, body, signature):  # type: ignore[arg-type]
            logger.warning("%s signature did not match", remote)
            raise AuthenticationError("unauthorized")
        return VerifiedRequest(body=body, source=source)
