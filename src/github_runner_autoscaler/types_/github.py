# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Module containing GitHub API related types."""

from __future__ import annotations

from enum import Enum
from typing import Optional, TypedDict

from pydantic import BaseModel, Field

from github_runner_autoscaler import labels as label_matcher
from github_runner_autoscaler.labels import MagicLabel


class JobAction(str, Enum):
    """The action of a workflow_job webhook.

    Attributes:
        QUEUED: The job is waiting for a runner.
        COMPLETED: The job has finished.
        IN_PROGRESS: A runner picked up the job.
        WAITING: The job is waiting for a deployment protection rule.
    """

    QUEUED = "queued"
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"


class JobStatus(str, Enum):
    """Status of a job on GitHub.

    Attributes:
        QUEUED: Represents a job that is queued.
        IN_PROGRESS: Represents a job that is in progress.
        COMPLETED: Represents a job that is completed.
        WAITING: Represents a job that is waiting.
        REQUESTED: Represents a job that is requested.
        PENDING: Represents a job that is pending.
    """

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WAITING = "waiting"
    REQUESTED = "requested"
    PENDING = "pending"


class Job(BaseModel):
    """The workflow job of a webhook, also the body of the callback tasks.

    Attributes:
        id: The ID of the job.
        name: The name of the job.
        status: The status of the job.
        labels: The labels requested by the job.
        runner_name: The runner that picked up the job, if any.
        runner_group_name: The runner group of the runner, if any.
        runner_group_id: The runner group id of the runner, if any.
    """

    id: int
    name: str = ""
    status: JobStatus
    labels: list[str] = Field(default_factory=list)
    runner_name: Optional[str] = None
    runner_group_name: Optional[str] = None
    runner_group_id: Optional[int] = None

    def has_all_labels(self, required: list[str]) -> tuple[bool, list[str]]:
        """Check whether the job requests all the required labels.

        Args:
            required: The required labels.

        Returns:
            Whether all labels were found and the missing labels.
        """
        return label_matcher.has_all_labels(self.labels, required)

    def get_magic_label_value(self, key: MagicLabel) -> str | None:
        """Get the value of a magic label of the job.

        Args:
            key: The magic label key.

        Returns:
            The value or None.
        """
        return label_matcher.get_magic_label_value(self.labels, key)


class Payload(BaseModel):
    """The relevant part of a workflow_job webhook payload.

    Attributes:
        action: The action that triggered the webhook.
        job: The workflow job.
    """

    action: JobAction
    job: Job = Field(alias="workflow_job")


class JITConfig(TypedDict, total=False):
    """JIT Config Token reply from GitHub API.

    Attributes:
        encoded_jit_config: The base64 encoded runner configuration.
        runner: Information about the runner associated with the JIT config.
    """

    encoded_jit_config: str
    runner: dict
