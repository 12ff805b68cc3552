# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Routing of verified GitHub webhooks to callback tasks.

A verified webhook is classified by event and action and ends in one of:

* dispatched: a signed callback task was handed to the task queue,
* ignored: the webhook is acknowledged without action,
* rejected: an exception is raised (malformed payload, task queue failure).

A task queue failure is not acknowledged, so GitHub redelivers the webhook.
Duplicate deliveries are not filtered; each one schedules its own callback.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode

from pydantic import ValidationError

from github_runner_autoscaler import metrics
from github_runner_autoscaler.callback import CallbackScheduler
from github_runner_autoscaler.configuration.sources import Source
from github_runner_autoscaler.constants import PING_EVENT, WORKFLOW_JOB_EVENT
from github_runner_autoscaler.errors import MalformedRequestError, TaskQueueError
from github_runner_autoscaler.types_.github import JobAction, Payload

logger = logging.getLogger(__name__)


class RouteDecision(str, Enum):
    """The final state of a verified webhook.

    Attributes:
        DISPATCHED: A callback task was scheduled.
        IGNORED: No action was needed.
    """

    DISPATCHED = "dispatched"
    IGNORED = "ignored"


@dataclass(frozen=True)
class RouteResult:
    """The result of routing a webhook.

    Attributes:
        decision: The final state.
        reason: Human readable explanation.
    """

    decision: RouteDecision
    reason: str


def build_callback_url(base_url: str, path: str, query_param: str, source_key: str) -> str:
    """Build the URL of a callback.

    Args:
        base_url: The public URL of the application.
        path: The path of the callback handler.
        query_param: Name of the query parameter carrying the source key.
        source_key: The key of the source.

    Returns:
        The callback URL.
    """
    return f"{base_url.rstrip('/')}{path}?{urlencode({query_param: source_key})}"


class WebhookRouter:
    """Classify verified webhooks and schedule the callbacks."""

    def __init__(  # pylint: disable=too-many-arguments, too-many-positional-arguments
        self,
        scheduler: CallbackScheduler,
        runner_labels: list[str],
        runner_group_id: int,
        create_path: str,
        delete_path: str,
        source_query_param: str,
    ):
        """Construct the object.

        Args:
            scheduler: The callback scheduler.
            runner_labels: Labels a job needs to request.
            runner_group_id: The configured runner group for enterprises and organizations.
            create_path: Path of the create-vm callback handler.
            delete_path: Path of the delete-vm callback handler.
            source_query_param: Name of the query parameter carrying the source key.
        """
        self._scheduler = scheduler
        self._runner_labels = runner_labels
        self._runner_group_id = runner_group_id
        self._create_path = create_path
        self._delete_path = delete_path
        self._source_query_param = source_query_param

    def route(self, event: str | None, body: bytes, source: Source, base_url: str) -> RouteResult:
        """Route a verified webhook.

        Args:
            event: The GitHub event type header.
            body: The verified webhook body.
            source: The source that signed the webhook.
            base_url: The public URL of the application for the callbacks.

        Raises:
            MalformedRequestError: If the workflow job payload cannot be parsed.
            TaskQueueError: If the callback could not be scheduled.

        Returns:
            The routing result.
        """
        if event == PING_EVENT:
            logger.info("Webhook ping acknowledged")
            return self._result(event, None, RouteDecision.IGNORED, "ping")
        if event != WORKFLOW_JOB_EVENT:
            logger.info('Unknown GitHub webhook event "%s" received - ignoring', event)
            return self._result(event, None, RouteDecision.IGNORED, f"unknown event {event}")

        try:
            payload = Payload.model_validate_json(body)
        except ValidationError as exc:
            logger.error(
                "Can not unmarshal payload - is the webhook content type set to "
                '"application/json"? %s',
                exc,
            )
            raise MalformedRequestError("invalid workflow_job payload") from exc

        logger.info(
            "Received workflow job %d (%s) with action %s from %s",
            payload.job.id,
            payload.job.name,
            payload.action.value,
            source.key,
        )
        match payload.action:
            case JobAction.QUEUED:
                result = self._route_queued(payload, source, base_url)
            case JobAction.COMPLETED:
                result = self._route_completed(payload, source, base_url)
            case _:
                result = RouteResult(RouteDecision.IGNORED, f"action {payload.action.value}")
        return self._result(event, payload.action, result.decision, result.reason)

    def _route_queued(self, payload: Payload, source: Source, base_url: str) -> RouteResult:
        """Schedule the create-vm callback of a queued job.

        Args:
            payload: The webhook payload.
            source: The source of the webhook.
            base_url: The public URL of the application.

        Returns:
            The routing result.
        """
        satisfied, missing_labels = payload.job.has_all_labels(self._runner_labels)
        if not satisfied:
            logger.warning(
                'Webhook requested to start a runner that is missing the label(s) "%s" - ignoring',
                ", ".join(missing_labels),
            )
            return RouteResult(RouteDecision.IGNORED, "missing labels")
        create_url = build_callback_url(
            base_url, self._create_path, self._source_query_param, source.key
        )
        self._schedule(create_url, source, payload, "create-vm")
        return RouteResult(RouteDecision.DISPATCHED, "create-vm")

    def _route_completed(self, payload: Payload, source: Source, base_url: str) -> RouteResult:
        """Schedule the delete-vm callback of a completed job.

        Args:
            payload: The webhook payload.
            source: The source of the webhook.
            base_url: The public URL of the application.

        Returns:
            The routing result.
        """
        expected_group_id = source.expected_runner_group_id(self._runner_group_id)
        if payload.job.runner_group_id != expected_group_id:
            logger.warning(
                "Webhook signaled to delete a runner that does not belong to the expected runner "
                'group (expected "%d" got "%s") - ignoring',
                expected_group_id,
                payload.job.runner_group_id,
            )
            return RouteResult(RouteDecision.IGNORED, "unexpected runner group")
        satisfied, missing_labels = payload.job.has_all_labels(self._runner_labels)
        if not satisfied:
            logger.warning(
                'Webhook signaled to delete a runner that is missing the label(s) "%s" - ignoring',
                ", ".join(missing_labels),
            )
            return RouteResult(RouteDecision.IGNORED, "missing labels")
        delete_url = build_callback_url(
            base_url, self._delete_path, self._source_query_param, source.key
        )
        self._schedule(delete_url, source, payload, "delete-vm")
        return RouteResult(RouteDecision.DISPATCHED, "delete-vm")

    def _schedule(self, url: str, source: Source, payload: Payload, kind: str) -> None:
        """Schedule a callback task.

        Args:
            url: The callback URL.
            source: The source of the webhook.
            payload: The webhook payload.
            kind: The callback kind, for logging and metrics.

        Raises:
            TaskQueueError: If the callback could not be scheduled.
        """
        try:
            self._scheduler.schedule(url, source.secret, payload.job)
        except TaskQueueError:
            logger.exception("Can not enqueue %s cloud task callback", kind)
            raise
        metrics.CALLBACK_TASKS_TOTAL.labels(kind).inc()

    @staticmethod
    def _result(
        event: str | None, action: JobAction | None, decision: RouteDecision, reason: str
    ) -> RouteResult:
        """Record the routing result.

        Args:
            event: The event type.
            action: The job action, if any.
            decision: The routing decision.
            reason: The explanation.

        Returns:
            The routing result.
        """
        metrics.WEBHOOK_EVENTS_TOTAL.labels(
            event or "", action.value if action else "", decision.value
        ).inc()
        return RouteResult(decision, reason)
