# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Class for accessing the Compute Engine API for managing runner instances."""

import concurrent.futures
import functools
import logging
from enum import Enum
from typing import Callable, Mapping, ParamSpec, TypeVar

from google.api_core import exceptions as google_exceptions
from google.cloud import compute_v1

from github_runner_autoscaler.errors import ComputeError, InstanceNotFoundError

logger = logging.getLogger(__name__)

# Parameters of the function decorated with _catch_compute_errors
ParamT = ParamSpec("ParamT")
# Return type of the function decorated with _catch_compute_errors
ReturnT = TypeVar("ReturnT")


class InstanceStatus(str, Enum):
    """Status of a Compute Engine instance.

    Attributes:
        PROVISIONING: Resources are allocated for the instance, it is not running yet.
        STAGING: Resources are acquired and the instance is preparing for first boot.
        RUNNING: The instance is booting up or running.
        STOPPING: The instance is being stopped.
        SUSPENDING: The instance is being suspended.
        SUSPENDED: The instance is suspended.
        TERMINATED: The instance is stopped.
        REPAIRING: The instance is being repaired and is unusable.
        UNKNOWN: The status could not be read.
    """

    PROVISIONING = "PROVISIONING"
    STAGING = "STAGING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    SUSPENDING = "SUSPENDING"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"
    REPAIRING = "REPAIRING"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_api(cls, status: str | None) -> "InstanceStatus":
        """Convert the status string of the API.

        Args:
            status: The status as returned by the API.

        Returns:
            The status, UNKNOWN for missing or unexpected values.
        """
        try:
            return cls(status)
        except ValueError:
            return cls.UNKNOWN


def _catch_compute_errors(func: Callable[ParamT, ReturnT]) -> Callable[ParamT, ReturnT]:
    """Translate Google API errors into compute errors.

    Args:
        func: The target function to catch errors for.

    Returns:
        The decorated function.
    """

    @functools.wraps(func)
    def wrapper(*args: ParamT.args, **kwargs: ParamT.kwargs) -> ReturnT:
        """Catch the errors of the Compute Engine API.

        Args:
            args: Placeholder for positional arguments.
            kwargs: Placeholder for keyword arguments.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
            ComputeError: If the API call or the operation failed.

        Returns:
            The return value of the decorated function.
        """
        try:
            return func(*args, **kwargs)
        except google_exceptions.NotFound as exc:
            raise InstanceNotFoundError(str(exc)) from exc
        except google_exceptions.GoogleAPIError as exc:
            raise ComputeError(str(exc)) from exc
        except concurrent.futures.TimeoutError as exc:
            raise ComputeError("Timed out waiting for the Compute Engine operation") from exc

    return wrapper


class ComputeClient:
    """Client for the instances of a single zone.

    All operations block until the Compute Engine operation finished or failed.
    """

    def __init__(  # pylint: disable=too-many-arguments, too-many-positional-arguments
        self,
        project_id: str,
        zone: str,
        instance_template: str,
        operation_timeout: float,
        client: compute_v1.InstancesClient | None = None,
    ):
        """Construct the object.

        Args:
            project_id: The project of the instances.
            zone: The zone of the instances.
            instance_template: The full path of the template to create instances from.
            operation_timeout: Seconds to wait for an operation to finish.
            client: The Compute Engine instances client to use.
        """
        self._project_id = project_id
        self._zone = zone
        self._instance_template = instance_template
        self._operation_timeout = operation_timeout
        self._client = client if client is not None else compute_v1.InstancesClient()

    @_catch_compute_errors
    def get_instance_status(self, instance_name: str) -> InstanceStatus:
        """Get the status of an instance.

        Args:
            instance_name: The name of the instance.

        Returns:
            The status of the instance.
        """
        instance = self._client.get(
            project=self._project_id, zone=self._zone, instance=instance_name
        )
        status = InstanceStatus.from_api(instance.status or None)
        if status == InstanceStatus.UNKNOWN:
            logger.error("Could not read status for instance: %s", instance_name)
        return status

    def instance_exists(self, instance_name: str) -> bool:
        """Check whether an instance exists.

        Args:
            instance_name: The name of the instance.

        Returns:
            Whether the instance exists.
        """
        try:
            self.get_instance_status(instance_name)
        except InstanceNotFoundError:
            return False
        return True

    @_catch_compute_errors
    def start_instance(self, instance_name: str) -> None:
        """Start a stopped instance.

        Args:
            instance_name: The name of the instance.
        """
        logger.info("About to start instance: %s", instance_name)
        operation = self._client.start(
            project=self._project_id, zone=self._zone, instance=instance_name
        )
        operation.result(timeout=self._operation_timeout)
        logger.info("Started instance: %s", instance_name)

    @_catch_compute_errors
    def stop_instance(self, instance_name: str) -> None:
        """Stop a running instance.

        Args:
            instance_name: The name of the instance.
        """
        logger.debug("About to stop instance: %s", instance_name)
        operation = self._client.stop(
            project=self._project_id, zone=self._zone, instance=instance_name
        )
        operation.result(timeout=self._operation_timeout)
        logger.info("Stopped instance: %s", instance_name)

    @_catch_compute_errors
    def delete_instance(self, instance_name: str) -> None:
        """Delete an instance.

        Args:
            instance_name: The name of the instance.
        """
        logger.debug("About to delete instance: %s", instance_name)
        operation = self._client.delete(
            project=self._project_id, zone=self._zone, instance=instance_name
        )
        operation.result(timeout=self._operation_timeout)
        logger.info("Deleted instance: %s", instance_name)

    @_catch_compute_errors
    def create_instance_from_template(
        self, instance_name: str, machine_type: str | None, metadata: Mapping[str, str]
    ) -> None:
        """Create an instance from the instance template.

        Args:
            instance_name: The name of the instance.
            machine_type: Machine type overriding the one of the template.
            metadata: Instance metadata items.
        """
        logger.debug("About to create instance %s from template", instance_name)
        instance = compute_v1.Instance(
            name=instance_name,
            metadata=compute_v1.Metadata(
                items=[compute_v1.Items(key=key, value=value) for key, value in metadata.items()]
            ),
        )
        if machine_type is not None:
            instance.machine_type = f"zones/{self._zone}/machineTypes/{machine_type}"
        request = compute_v1.InsertInstanceRequest(
            project=self._project_id,
            zone=self._zone,
            instance_resource=instance,
            source_instance_template=self._instance_template,
        )
        operation = self._client.insert(request=request)
        operation.result(timeout=self._operation_timeout)
        logger.info("Created instance %s from template %s", instance_name, self._instance_template)
