# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Wiring of the autoscaler components."""

import logging
from dataclasses import dataclass
from datetime import timedelta

from github_runner_autoscaler.callback import CallbackScheduler
from github_runner_autoscaler.cloud.compute import ComputeClient
from github_runner_autoscaler.cloud.secrets import SecretManagerStore
from github_runner_autoscaler.cloud.tasks import CloudTasksQueue
from github_runner_autoscaler.configuration import ApplicationConfiguration
from github_runner_autoscaler.github_client import GithubClient
from github_runner_autoscaler.provisioner import RunnerProvisioner
from github_runner_autoscaler.signature import SignatureVerifier
from github_runner_autoscaler.webhook import WebhookRouter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Autoscaler:
    """The components serving the HTTP requests.

    None of the components holds mutable state, they are shared by all request threads.

    Attributes:
        verifier: Verifies the signatures of webhooks and callbacks.
        router: Routes the verified webhooks.
        provisioner: Creates and deletes the runner instances.
    """

    verifier: SignatureVerifier
    router: WebhookRouter
    provisioner: RunnerProvisioner

    @classmethod
    def build(cls, config: ApplicationConfiguration) -> "Autoscaler":
        """Create the components with the Google Cloud clients.

        Args:
            config: The application configuration.

        Returns:
            The autoscaler.
        """
        registry = config.source_registry()
        if not registry:
            logger.warning("No webhook sources registered - all webhooks will be ignored")
        scheduler = CallbackScheduler(
            task_queue=CloudTasksQueue(config.cloud.task_queue, config.cloud.request_timeout),
            delay=timedelta(seconds=config.callback.delay),
            dispatch_deadline=timedelta(seconds=config.callback.dispatch_deadline),
        )
        github_client = GithubClient(
            secret_store=SecretManagerStore(
                config.cloud.secret_version, config.cloud.request_timeout
            ),
            api_url=str(config.github.api_url),
            timeout=config.github.request_timeout,
        )
        compute = ComputeClient(
            project_id=config.cloud.project_id,
            zone=config.cloud.zone,
            instance_template=config.cloud.instance_template,
            operation_timeout=config.cloud.operation_timeout,
        )
        if config.simulate:
            logger.warning("Simulation mode is active - no VMs will be created/deleted")
        return cls(
            verifier=SignatureVerifier(registry, config.source_query_param),
            router=WebhookRouter(
                scheduler=scheduler,
                runner_labels=config.runner.labels,
                runner_group_id=config.runner.group_id,
                create_path=config.routes.create_vm,
                delete_path=config.routes.delete_vm,
                source_query_param=config.source_query_param,
            ),
            provisioner=RunnerProvisioner(
                github_client=github_client,
                compute=compute,
                prefix=config.runner.prefix,
                runner_group_id=config.runner.group_id,
                script_attribute=config.runner.script_attribute,
                simulate=config.simulate,
            ),
        )
