# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Provisioning of just-in-time registered runner instances."""

import logging
import random
import string
from dataclasses import dataclass

from github_runner_autoscaler import metrics
from github_runner_autoscaler.cloud.compute import ComputeClient
from github_runner_autoscaler.configuration.sources import Source
from github_runner_autoscaler.constants import (
    JIT_CONFIG_ATTRIBUTE_PREFIX,
    STARTUP_SCRIPT_ATTRIBUTE,
)
from github_runner_autoscaler.errors import InstanceNotFoundError
from github_runner_autoscaler.github_client import GithubClient
from github_runner_autoscaler.labels import MagicLabel
from github_runner_autoscaler.types_.github import Job

logger = logging.getLogger(__name__)

ATTRIBUTE_SUFFIX_LENGTH = 16

# Fetches the JIT config and the project wide runner script from the metadata server, runs the
# script with the JIT config and removes it again.
_STARTUP_SCRIPT_TEMPLATE = """#!/bin/bash
val=$(curl "http://metadata.google.internal/computeMetadata/v1/instance/attributes/{config_attribute}" -H "Metadata-Flavor: Google")
curl "http://metadata.google.internal/computeMetadata/v1/project/attributes/{script_attribute}" -H "Metadata-Flavor: Google" > runner_startup.sh
chmod +x ./runner_startup.sh
./runner_startup.sh $val
rm runner_startup.sh
"""  # noqa: E501


@dataclass(frozen=True)
class VmSettings:
    """Settings of the runner instance to create.

    Attributes:
        name: Name of the instance, also used as the runner name.
        machine_type: Machine type overriding the one of the instance template.
    """

    name: str
    machine_type: str | None = None


def build_instance_name(prefix: str, job_id: int) -> str:
    """Build the instance name for a job.

    The name is derived from the job, so a redelivered create callback maps to the same instance.

    Args:
        prefix: The runner prefix.
        job_id: The workflow job ID.

    Returns:
        The instance name.
    """
    return f"{prefix}-{job_id}"


def random_lowercase(length: int) -> str:
    """Generate a random string of lowercase letters.

    Args:
        length: The length of the string.

    Returns:
        The random string.
    """
    return "".join(random.choices(string.ascii_lowercase, k=length))


def build_startup_script(config_attribute: str, script_attribute: str) -> str:
    """Build the startup script of a runner instance.

    Args:
        config_attribute: Instance metadata attribute holding the JIT config.
        script_attribute: Project metadata attribute holding the runner script.

    Returns:
        The startup script.
    """
    return _STARTUP_SCRIPT_TEMPLATE.format(
        config_attribute=config_attribute, script_attribute=script_attribute
    )


class RunnerProvisioner:
    """Create and delete the runner instances of workflow jobs."""

    def __init__(  # pylint: disable=too-many-arguments, too-many-positional-arguments
        self,
        github_client: GithubClient,
        compute: ComputeClient,
        prefix: str,
        runner_group_id: int,
        script_attribute: str,
        simulate: bool = False,
    ):
        """Construct the object.

        Args:
            github_client: Client issuing the JIT configs.
            compute: Client for the runner instances.
            prefix: Prefix of the instance names.
            runner_group_id: The configured runner group for enterprise and organization runners.
            script_attribute: Project metadata attribute holding the runner script.
            simulate: Only log the instance operations.
        """
        self._github_client = github_client
        self._compute = compute
        self._prefix = prefix
        self._runner_group_id = runner_group_id
        self._script_attribute = script_attribute
        self._simulate = simulate

    def vm_settings(self, job: Job) -> VmSettings:
        """Get the settings of the instance for a job.

        Args:
            job: The workflow job.

        Returns:
            The instance settings.
        """
        return VmSettings(
            name=build_instance_name(self._prefix, job.id),
            machine_type=job.get_magic_label_value(MagicLabel.MACHINE),
        )

    def create_runner(self, source: Source, job: Job) -> VmSettings:
        """Register a JIT runner for the job and create its instance.

        Blocks until the instance is created. If the instance of the job already exists, e.g.
        because the callback was delivered twice, nothing is done.

        Args:
            source: The source that sent the job.
            job: The workflow job.

        Returns:
            The settings of the instance.
        """
        settings = self.vm_settings(job)
        runner_group_id = source.expected_runner_group_id(self._runner_group_id)
        logger.info(
            "Using jit config for runner registration for %s: %s", source.type.value, source.name
        )
        if self._simulate:
            logger.warning(
                "Simulation mode: would create instance %s (machine type %s, runner group %d)",
                settings.name,
                settings.machine_type,
                runner_group_id,
            )
            return settings
        if self._compute.instance_exists(settings.name):
            logger.warning(
                "Instance %s for job %d already exists - ignoring", settings.name, job.id
            )
            return settings

        with metrics.CREATE_VM_DURATION_SECONDS.time():
            jit_config = self._github_client.generate_jit_config(
                self._github_client.jit_config_url(source),
                settings.name,
                runner_group_id,
                job.labels,
            )
            # Instances of the same template start concurrently, a random attribute name keeps
            # their metadata keys apart.
            config_attribute = (
                f"{JIT_CONFIG_ATTRIBUTE_PREFIX}_{random_lowercase(ATTRIBUTE_SUFFIX_LENGTH)}"
            )
            self._compute.create_instance_from_template(
                settings.name,
                settings.machine_type,
                {
                    config_attribute: jit_config,
                    STARTUP_SCRIPT_ATTRIBUTE: build_startup_script(
                        config_attribute, self._script_attribute
                    ),
                },
            )
        return settings

    def delete_runner(self, job: Job) -> None:
        """Delete the instance of the runner that executed the job.

        Blocks until the instance is deleted. An instance that no longer exists counts as
        deleted.

        Args:
            job: The completed workflow job.
        """
        if not job.runner_name:
            logger.warning("Job %d was not assigned to a runner - nothing to delete", job.id)
            return
        if self._simulate:
            logger.warning("Simulation mode: would delete instance %s", job.runner_name)
            return
        with metrics.DELETE_VM_DURATION_SECONDS.time():
            try:
                self._compute.delete_instance(job.runner_name)
            except InstanceNotFoundError:
                logger.warning("Instance %s does not exist - ignoring", job.runner_name)
