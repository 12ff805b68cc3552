# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Client for submitting HTTP callback tasks to a Cloud Tasks queue."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from google.api_core import exceptions as google_exceptions
from google.cloud import tasks_v2
from google.protobuf import duration_pb2, timestamp_pb2

from github_runner_autoscaler.errors import TaskQueueError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallbackTask:
    """A delayed HTTP POST request.

    Attributes:
        url: The URL to call.
        headers: The request headers.
        body: The request body.
        schedule_time: The earliest time to dispatch the request.
        dispatch_deadline: How long the queue waits for a response before retrying.
    """

    url: str
    headers: dict[str, str]
    body: bytes = field(repr=False)
    schedule_time: datetime
    dispatch_deadline: timedelta


class CloudTasksQueue:  # pylint: disable=too-few-public-methods
    """A Cloud Tasks queue.

    The queue delivers every task at least once and retries failed callbacks according to the
    retry configuration of the queue.
    """

    def __init__(
        self,
        queue_path: str,
        request_timeout: float,
        client: tasks_v2.CloudTasksClient | None = None,
    ):
        """Construct the object.

        Args:
            queue_path: Full path of the queue, projects/<id>/locations/<region>/queues/<name>.
            request_timeout: Seconds to wait for the task creation.
            client: The Cloud Tasks client to use.
        """
        self._queue_path = queue_path
        self._request_timeout = request_timeout
        self._client = client if client is not None else tasks_v2.CloudTasksClient()

    def create_task(self, callback: CallbackTask) -> str:
        """Submit a callback task.

        Args:
            callback: The callback to submit.

        Raises:
            TaskQueueError: If the task could not be created.

        Returns:
            The name of the created task.
        """
        schedule_time = timestamp_pb2.Timestamp()
        schedule_time.FromDatetime(callback.schedule_time)
        dispatch_deadline = duration_pb2.Duration()
        dispatch_deadline.FromTimedelta(callback.dispatch_deadline)
        task = tasks_v2.Task(
            http_request=tasks_v2.HttpRequest(
                http_method=tasks_v2.HttpMethod.POST,
                url=callback.url,
                headers=callback.headers,
                body=callback.body,
            ),
            schedule_time=schedule_time,
            dispatch_deadline=dispatch_deadline,
        )
        try:
            response = self._client.create_task(
                parent=self._queue_path, task=task, timeout=self._request_timeout
            )
        except google_exceptions.GoogleAPIError as exc:
            logger.error("Could not create cloud task for %s: %s", callback.url, exc)
            raise TaskQueueError(f"cloudtasks.CreateTask failed: {exc}") from exc
        return response.name
