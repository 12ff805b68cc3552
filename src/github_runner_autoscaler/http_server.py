#  Copyright 2025 Canonical Ltd.
#  See LICENSE file for licensing details.

"""The HTTP server for github-runner-autoscaler.

The HTTP server receives the GitHub webhooks and the callback tasks of the queue.
"""

from dataclasses import dataclass

from flask import Flask, current_app, request
from prometheus_client import generate_latest
from pydantic import ValidationError

from github_runner_autoscaler import metrics
from github_runner_autoscaler.configuration import ApplicationConfiguration
from github_runner_autoscaler.constants import EVENT_HEADER, SIGNATURE_HEADER
from github_runner_autoscaler.errors import (
    AuthenticationError,
    CloudError,
    CredentialError,
    MalformedRequestError,
    PlatformClientError,
    UnknownSourceError,
)
from github_runner_autoscaler.service import Autoscaler
from github_runner_autoscaler.signature import VerifiedRequest
from github_runner_autoscaler.types_.github import Job

APP_CONFIG_NAME = "app_config"
AUTOSCALER_NAME = "autoscaler"

_UPSTREAM_ERRORS = (CloudError, CredentialError, PlatformClientError)
UPSTREAM_ERROR_MESSAGE = "upstream failure"


def get_health() -> tuple[str, int]:
    """Get the health of the HTTP server.

    Returns:
        A empty response.
    """
    return ("", 200)


def get_metrics() -> bytes:
    """Return prometheus metrics from default registry.

    Returns:
        The latest metrics from the default Prometheus registry.
    """
    return generate_latest()


def handle_webhook() -> tuple[str, int]:
    """Handle a GitHub webhook.

    Returns:
        A empty response.
    """
    current_app.logger.info("Received webhook")
    verified = _verify_request()
    autoscaler: Autoscaler = current_app.config[AUTOSCALER_NAME]
    result = autoscaler.router.route(
        request.headers.get(EVENT_HEADER), verified.body, verified.source, _base_url()
    )
    current_app.logger.debug("Webhook %s: %s", result.decision.value, result.reason)
    return ("", 200)


def handle_create_vm() -> tuple[str, int]:
    """Handle a create-vm callback task.

    Returns:
        A empty response.
    """
    current_app.logger.info("Received create-vm cloud task callback")
    verified = _verify_request()
    job = _parse_job(verified)
    autoscaler: Autoscaler = current_app.config[AUTOSCALER_NAME]
    try:
        autoscaler.provisioner.create_runner(verified.source, job)
    except _UPSTREAM_ERRORS:
        metrics.CALLBACKS_TOTAL.labels("create-vm", "failure").inc()
        raise
    metrics.CALLBACKS_TOTAL.labels("create-vm", "success").inc()
    return ("", 200)


def handle_delete_vm() -> tuple[str, int]:
    """Handle a delete-vm callback task.

    Returns:
        A empty response.
    """
    current_app.logger.info("Received delete-vm cloud task callback")
    verified = _verify_request()
    job = _parse_job(verified)
    autoscaler: Autoscaler = current_app.config[AUTOSCALER_NAME]
    try:
        autoscaler.provisioner.delete_runner(job)
    except _UPSTREAM_ERRORS:
        metrics.CALLBACKS_TOTAL.labels("delete-vm", "failure").inc()
        raise
    metrics.CALLBACKS_TOTAL.labels("delete-vm", "success").inc()
    return ("", 200)


def _verify_request() -> VerifiedRequest:
    """Read the request body and verify its signature.

    Returns:
        The verified request.
    """
    app_config: ApplicationConfiguration = current_app.config[APP_CONFIG_NAME]
    autoscaler: Autoscaler = current_app.config[AUTOSCALER_NAME]
    return autoscaler.verifier.verify(
        request.get_data(),
        request.headers.get(SIGNATURE_HEADER),
        request.args.get(app_config.source_query_param),
        remote=request.remote_addr or "",
    )


def _parse_job(verified: VerifiedRequest) -> Job:
    """Parse the job carried by a callback.

    Args:
        verified: The verified callback request.

    Raises:
        MalformedRequestError: If the body is not a job.

    Returns:
        The job.
    """
    try:
        return Job.model_validate_json(verified.body)
    except ValidationError as exc:
        current_app.logger.error("Can not unmarshal callback job: %s", exc)
        raise MalformedRequestError("invalid job") from exc


def _base_url() -> str:
    """Get the public URL of the application for the callbacks.

    Returns:
        The configured base URL, or the HTTPS URL of the requested host.
    """
    app_config: ApplicationConfiguration = current_app.config[APP_CONFIG_NAME]
    if app_config.callback.base_url is not None:
        return str(app_config.callback.base_url)
    return f"https://{request.host}"


def _handle_unknown_source(err: UnknownSourceError) -> tuple[str, int]:
    """Acknowledge requests of unregistered sources.

    Args:
        err: The error.

    Returns:
        A empty response, unknown sources are not considered an error.
    """
    current_app.logger.debug("Ignoring request: %s", err)
    return ("", 200)


def _handle_authentication_error(err: AuthenticationError) -> tuple[str, int]:
    """Reject unauthenticated requests.

    Args:
        err: The error.

    Returns:
        The error response.
    """
    return (str(err), 401)


def _handle_malformed_request(err: MalformedRequestError) -> tuple[str, int]:
    """Reject malformed requests.

    Args:
        err: The error.

    Returns:
        The error response.
    """
    return (str(err), 400)


def _handle_upstream_error(err: Exception) -> tuple[str, int]:
    """Fail requests whose upstream calls failed, so the sender retries.

    Args:
        err: The error.

    Returns:
        A generic error response, the details are only logged.
    """
    current_app.logger.error("Upstream failure: %s", err)
    return (UPSTREAM_ERROR_MESSAGE, 500)


def create_app(app_config: ApplicationConfiguration, autoscaler: Autoscaler) -> Flask:
    """Create the Flask application.

    Args:
        app_config: The application configuration.
        autoscaler: The autoscaler components.

    Returns:
        The Flask application.
    """
    app = Flask(__name__)
    app.config[APP_CONFIG_NAME] = app_config
    app.config[AUTOSCALER_NAME] = autoscaler

    app.add_url_rule("/healthcheck", "healthcheck", get_health, methods=["GET"])
    app.add_url_rule("/metrics", "metrics", get_metrics, methods=["GET"])
    app.add_url_rule(app_config.routes.webhook, "webhook", handle_webhook, methods=["POST"])
    app.add_url_rule(app_config.routes.create_vm, "create_vm", handle_create_vm, methods=["POST"])
    app.add_url_rule(app_config.routes.delete_vm, "delete_vm", handle_delete_vm, methods=["POST"])

    app.register_error_handler(UnknownSourceError, _handle_unknown_source)
    app.register_error_handler(AuthenticationError, _handle_authentication_error)
    app.register_error_handler(MalformedRequestError, _handle_malformed_request)
    for error in _UPSTREAM_ERRORS:
        app.register_error_handler(error, _handle_upstream_error)
    return app


@dataclass
class FlaskArgs:
    """Arguments for Flask HTTP server.

    Attributes:
        host: The hostname to listen on for the HTTP server.
        port: The port to listen on for the HTTP server.
        debug: Start the flask HTTP server in debug mode.
    """

    host: str
    port: int
    debug: bool


def start_http_server(
    app_config: ApplicationConfiguration,
    autoscaler: Autoscaler,
    flask_args: FlaskArgs,
) -> None:
    """Start the HTTP server, serving every request in its own thread.

    Args:
        app_config: The application configuration.
        autoscaler: The autoscaler components.
        flask_args: The arguments for the flask HTTP server.
    """
    app = create_app(app_config, autoscaler)
    app.logger.info("Starting the server...")
    app.run(
        host=flask_args.host,
        port=flask_args.port,
        debug=flask_args.debug,
        use_reloader=False,
        threaded=True,
    )
