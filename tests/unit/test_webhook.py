# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Test for the webhook routing."""

import json
from unittest.mock import MagicMock

import pytest

from github_runner_autoscaler.callback import CallbackScheduler
from github_runner_autoscaler.configuration.sources import Source
from github_runner_autoscaler.errors import MalformedRequestError, TaskQueueError
from github_runner_autoscaler.types_.github import Job
from github_runner_autoscaler.webhook import (
    RouteDecision,
    RouteResult,
    WebhookRouter,
    build_callback_url,
)

BASE_URL = "https://autoscaler.example.com"


def _payload(action: str, **job: object) -> bytes:
    """Build a workflow_job webhook body.

    Args:
        action: The action of the webhook.
        job: Fields overriding the default workflow job.

    Returns:
        The JSON encoded body.
    """
    workflow_job = {
        "id": 1234,
        "run_id": 5678,
        "name": "build",
        "status": "queued",
        "labels": ["self-hosted", "linux"],
        "runner_name": None,
        "runner_group_id": None,
        "runner_group_name": None,
    }
    workflow_job.update(job)
    return json.dumps(
        {"action": action, "workflow_job": workflow_job, "repository": {"id": 1}}
    ).encode("utf-8")


@pytest.fixture(name="scheduler")
def scheduler_fixture() -> MagicMock:
    return MagicMock(spec=CallbackScheduler)


@pytest.fixture(name="router")
def router_fixture(scheduler: MagicMock) -> WebhookRouter:
    return WebhookRouter(
        scheduler=scheduler,
        runner_labels=["self-hosted", "linux"],
        runner_group_id=4,
        create_path="/create_vm",
        delete_path="/delete_vm",
        source_query_param="src",
    )


def test_build_callback_url():
    """
    arrange: A base URL with trailing slash and a source key with a slash.
    act: Build the callback URL.
    assert: The source key is URL encoded.
    """
    url = build_callback_url(BASE_URL + "/", "/create_vm", "src", "canonical/runner")

    assert url == "https://autoscaler.example.com/create_vm?src=canonical%2Frunner"


def test_route_ping(router: WebhookRouter, scheduler: MagicMock, org_source: Source):
    """
    arrange: A ping event.
    act: Route the webhook.
    assert: The webhook is ignored.
    """
    result = router.route("ping", b'{"zen": "Keep it logically awesome."}', org_source, BASE_URL)

    assert result == RouteResult(RouteDecision.IGNORED, "ping")
    scheduler.schedule.assert_not_called()


@pytest.mark.parametrize("event", ["push", None])
def test_route_unknown_event(
    router: WebhookRouter, scheduler: MagicMock, org_source: Source, event: str | None
):
    """
    arrange: An event other than workflow_job.
    act: Route the webhook.
    assert: The webhook is ignored.
    """
    result = router.route(event, b"{}", org_source, BASE_URL)

    assert result.decision == RouteDecision.IGNORED
    scheduler.schedule.assert_not_called()


@pytest.mark.parametrize(
    "body",
    [
        pytest.param(b"not json", id="not json"),
        pytest.param(b'{"action": "queued"}', id="missing job"),
        pytest.param(b'{"action": "rerun", "workflow_job": {}}', id="unknown action"),
    ],
)
def test_route_malformed_payload(router: WebhookRouter, org_source: Source, body: bytes):
    """
    arrange: A workflow_job event with an invalid payload.
    act: Route the webhook.
    assert: A MalformedRequestError is raised.
    """
    with pytest.raises(MalformedRequestError):
        router.route("workflow_job", body, org_source, BASE_URL)


def test_route_queued(router: WebhookRouter, scheduler: MagicMock, org_source: Source):
    """
    arrange: A queued job with the required labels.
    act: Route the webhook.
    assert: A create-vm callback signed with the source secret is scheduled.
    """
    result = router.route("workflow_job", _payload("queued"), org_source, BASE_URL)

    assert result == RouteResult(RouteDecision.DISPATCHED, "create-vm")
    scheduler.schedule.assert_called_once()
    url, secret, job = scheduler.schedule.call_args.args
    assert url == f"{BASE_URL}/create_vm?src=canonical"
    assert secret == org_source.secret
    assert isinstance(job, Job)
    assert job.id == 1234


def test_route_queued_missing_labels(
    router: WebhookRouter, scheduler: MagicMock, org_source: Source
):
    """
    arrange: A queued job without the linux label.
    act: Route the webhook.
    assert: The webhook is ignored.
    """
    body = _payload("queued", labels=["self-hosted", "@machine:e2-small"])

    result = router.route("workflow_job", body, org_source, BASE_URL)

    assert result == RouteResult(RouteDecision.IGNORED, "missing labels")
    scheduler.schedule.assert_not_called()


def test_route_queued_task_queue_failure(
    router: WebhookRouter, scheduler: MagicMock, org_source: Source
):
    """
    arrange: A task queue failing to accept the callback.
    act: Route a queued job.
    assert: The TaskQueueError is propagated so GitHub redelivers the webhook.
    """
    scheduler.schedule.side_effect = TaskQueueError("queue unavailable")

    with pytest.raises(TaskQueueError):
        router.route("workflow_job", _payload("queued"), org_source, BASE_URL)


def test_route_completed(router: WebhookRouter, scheduler: MagicMock, org_source: Source):
    """
    arrange: A completed job that ran in the configured runner group.
    act: Route the webhook.
    assert: A delete-vm callback is scheduled.
    """
    body = _payload(
        "completed", status="completed", runner_name="runner-1234", runner_group_id=4
    )

    result = router.route("workflow_job", body, org_source, BASE_URL)

    assert result == RouteResult(RouteDecision.DISPATCHED, "delete-vm")
    url, _, job = scheduler.schedule.call_args.args
    assert url == f"{BASE_URL}/delete_vm?src=canonical"
    assert job.runner_name == "runner-1234"


def test_route_completed_repository(
    router: WebhookRouter, scheduler: MagicMock, repo_source: Source
):
    """
    arrange: A completed job of a repository in the default runner group.
    act: Route the webhook.
    assert: A delete-vm callback is scheduled although group 4 is configured.
    """
    body = _payload(
        "completed", status="completed", runner_name="runner-1234", runner_group_id=1
    )

    result = router.route("workflow_job", body, repo_source, BASE_URL)

    assert result.decision == RouteDecision.DISPATCHED
    url, _, _ = scheduler.schedule.call_args.args
    assert url == f"{BASE_URL}/delete_vm?src=canonical%2Frunner"


@pytest.mark.parametrize("runner_group_id", [1, None])
def test_route_completed_other_runner_group(
    router: WebhookRouter,
    scheduler: MagicMock,
    org_source: Source,
    runner_group_id: int | None,
):
    """
    arrange: A completed job that ran outside of the configured runner group.
    act: Route the webhook.
    assert: The webhook is ignored.
    """
    body = _payload(
        "completed", status="completed", runner_name="hosted", runner_group_id=runner_group_id
    )

    result = router.route("workflow_job", body, org_source, BASE_URL)

    assert result == RouteResult(RouteDecision.IGNORED, "unexpected runner group")
    scheduler.schedule.assert_not_called()


def test_route_completed_missing_labels(
    router: WebhookRouter, scheduler: MagicMock, org_source: Source
):
    """
    arrange: A completed job in the runner group without the required labels.
    act: Route the webhook.
    assert: The webhook is ignored.
    """
    body = _payload(
        "completed",
        status="completed",
        labels=["self-hosted"],
        runner_name="runner-1234",
        runner_group_id=4,
    )

    result = router.route("workflow_job", body, org_source, BASE_URL)

    assert result == RouteResult(RouteDecision.IGNORED, "missing labels")
    scheduler.schedule.assert_not_called()


@pytest.mark.parametrize("action", ["in_progress", "waiting"])
def test_route_other_actions(
    router: WebhookRouter, scheduler: MagicMock, org_source: Source, action: str
):
    """
    arrange: A workflow job with an action other than queued or completed.
    act: Route the webhook.
    assert: The webhook is ignored.
    """
    result = router.route("workflow_job", _payload(action, status=action), org_source, BASE_URL)

    assert result.decision == RouteDecision.IGNORED
    scheduler.schedule.assert_not_called()
