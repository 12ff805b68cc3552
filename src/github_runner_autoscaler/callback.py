# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Scheduling of the signed create-vm and delete-vm callbacks."""

import logging
from datetime import datetime, timedelta, timezone

from github_runner_autoscaler.cloud.tasks import CallbackTask, CloudTasksQueue
from github_runner_autoscaler.constants import SIGNATURE_HEADER
from github_runner_autoscaler.signature import build_signature_header
from github_runner_autoscaler.types_.github import Job

logger = logging.getLogger(__name__)


class CallbackScheduler:  # pylint: disable=too-few-public-methods
    """Hand over signed, delayed callbacks to the task queue.

    Once submitted, the queue owns the callback. Redelivery and retries are up to the queue.
    """

    def __init__(
        self, task_queue: CloudTasksQueue, delay: timedelta, dispatch_deadline: timedelta
    ):
        """Construct the object.

        Args:
            task_queue: The queue to submit the callbacks to.
            delay: Time between scheduling and dispatching a callback.
            dispatch_deadline: How long the queue waits for the callback handler.
        """
        self._task_queue = task_queue
        self._delay = delay
        self._dispatch_deadline = dispatch_deadline

    def schedule(self, url: str, secret: bytes, job: Job) -> None:
        """Schedule a callback carrying the job.

        The body is signed with the secret of the source, so the callback passes the same
        signature verification as the webhook.

        Args:
            url: The callback URL.
            secret: The secret of the source that sent the webhook.
            job: The workflow job.
        """
        body = job.model_dump_json().encode("utf-8")
        callback = CallbackTask(
            url=url,
            headers={
                "Content-Type": "application/json",
                SIGNATURE_HEADER: build_signature_header(secret, body),
            },
            body=body,
            schedule_time=datetime.now(timezone.utc) + self._delay,
            dispatch_deadline=self._dispatch_deadline,
        )
        task_name = self._task_queue.create_task(callback)
        logger.info(
            "Created cloud task %s callback with url %s for job %d", task_name, url, job.id
        )
