# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Test for the runner provisioner."""

from unittest.mock import MagicMock

import pytest

from github_runner_autoscaler.cloud.compute import ComputeClient
from github_runner_autoscaler.configuration.sources import Source
from github_runner_autoscaler.errors import ComputeError, InstanceNotFoundError, JitConfigError
from github_runner_autoscaler.github_client import GithubClient
from github_runner_autoscaler.provisioner import (
    ATTRIBUTE_SUFFIX_LENGTH,
    RunnerProvisioner,
    VmSettings,
    build_instance_name,
    build_startup_script,
)
from tests.unit.factories.github_factory import JobFactory

JIT_URL = "https://api.github.com/orgs/canonical/actions/runners/generate-jitconfig"


@pytest.fixture(name="github_client")
def github_client_fixture() -> MagicMock:
    github_client = MagicMock(spec=GithubClient)
    github_client.jit_config_url.return_value = JIT_URL
    github_client.generate_jit_config.return_value = "ZW5jb2RlZA=="
    return github_client


@pytest.fixture(name="compute")
def compute_fixture() -> MagicMock:
    compute = MagicMock(spec=ComputeClient)
    compute.instance_exists.return_value = False
    return compute


@pytest.fixture(name="provisioner")
def provisioner_fixture(github_client: MagicMock, compute: MagicMock) -> RunnerProvisioner:
    return RunnerProvisioner(
        github_client=github_client,
        compute=compute,
        prefix="runner",
        runner_group_id=4,
        script_attribute="startup_script_register_jit_runner",
    )


def test_build_instance_name():
    """
    arrange: A prefix and a job id.
    act: Build the instance name.
    assert: The name is derived from both, so it is the same for every delivery.
    """
    assert build_instance_name("runner", 1234) == "runner-1234"
    assert build_instance_name("runner", 1234) == build_instance_name("runner", 1234)


def test_build_startup_script():
    """
    arrange: The metadata attributes.
    act: Build the startup script.
    assert: The script fetches both attributes from the metadata server.
    """
    script = build_startup_script("jit_config_abc", "register_runner")

    assert script.startswith("#!/bin/bash\n")
    assert "/instance/attributes/jit_config_abc" in script
    assert "/project/attributes/register_runner" in script
    assert "./runner_startup.sh $val" in script


def test_vm_settings(provisioner: RunnerProvisioner):
    """
    arrange: A job with a machine label.
    act: Get the VM settings.
    assert: The machine type of the label is used.
    """
    job = JobFactory(id=99, labels=["self-hosted", "@machine:e2-standard-4"])

    assert provisioner.vm_settings(job) == VmSettings(
        name="runner-99", machine_type="e2-standard-4"
    )


def test_create_runner(
    provisioner: RunnerProvisioner,
    github_client: MagicMock,
    compute: MagicMock,
    org_source: Source,
):
    """
    arrange: A queued job of an organization.
    act: Create the runner.
    assert: A JIT config in the configured group is passed to the new instance.
    """
    job = JobFactory(id=42, labels=["self-hosted", "@machine:n2-standard-2"])

    settings = provisioner.create_runner(org_source, job)

    assert settings == VmSettings(name="runner-42", machine_type="n2-standard-2")
    github_client.jit_config_url.assert_called_once_with(org_source)
    github_client.generate_jit_config.assert_called_once_with(
        JIT_URL, "runner-42", 4, ["self-hosted", "@machine:n2-standard-2"]
    )
    compute.create_instance_from_template.assert_called_once()
    name, machine_type, metadata = compute.create_instance_from_template.call_args.args
    assert name == "runner-42"
    assert machine_type == "n2-standard-2"
    config_attribute = next(key for key in metadata if key.startswith("jit_config_"))
    assert len(config_attribute) == len("jit_config_") + ATTRIBUTE_SUFFIX_LENGTH
    assert metadata[config_attribute] == "ZW5jb2RlZA=="
    assert metadata["startup-script"] == build_startup_script(
        config_attribute, "startup_script_register_jit_runner"
    )


def test_create_runner_repository_group(
    provisioner: RunnerProvisioner, github_client: MagicMock, repo_source: Source
):
    """
    arrange: A queued job of a repository.
    act: Create the runner.
    assert: The runner is registered in the default group.
    """
    provisioner.create_runner(repo_source, JobFactory(id=7, labels=["self-hosted"]))

    github_client.generate_jit_config.assert_called_once_with(
        JIT_URL, "runner-7", 1, ["self-hosted"]
    )


def test_create_runner_existing_instance(
    provisioner: RunnerProvisioner,
    github_client: MagicMock,
    compute: MagicMock,
    org_source: Source,
):
    """
    arrange: The instance of the job already exists.
    act: Create the runner.
    assert: No JIT config is generated and no instance is created.
    """
    compute.instance_exists.return_value = True

    provisioner.create_runner(org_source, JobFactory(id=42))

    compute.instance_exists.assert_called_once_with("runner-42")
    github_client.generate_jit_config.assert_not_called()
    compute.create_instance_from_template.assert_not_called()


def test_create_runner_simulate(
    github_client: MagicMock, compute: MagicMock, org_source: Source
):
    """
    arrange: A provisioner in simulation mode.
    act: Create the runner.
    assert: Neither GitHub nor Compute Engine is called.
    """
    provisioner = RunnerProvisioner(github_client, compute, "runner", 1, "script", simulate=True)

    settings = provisioner.create_runner(org_source, JobFactory(id=3))

    assert settings.name == "runner-3"
    github_client.generate_jit_config.assert_not_called()
    compute.instance_exists.assert_not_called()
    compute.create_instance_from_template.assert_not_called()


def test_create_runner_jit_config_failure(
    provisioner: RunnerProvisioner,
    github_client: MagicMock,
    compute: MagicMock,
    org_source: Source,
):
    """
    arrange: GitHub failing to issue a JIT config.
    act: Create the runner.
    assert: The error is propagated and no instance is created.
    """
    github_client.generate_jit_config.side_effect = JitConfigError("failed jit-config response")

    with pytest.raises(JitConfigError):
        provisioner.create_runner(org_source, JobFactory())
    compute.create_instance_from_template.assert_not_called()


def test_create_runner_compute_failure(
    provisioner: RunnerProvisioner, compute: MagicMock, org_source: Source
):
    """
    arrange: Compute Engine failing to create the instance.
    act: Create the runner.
    assert: The ComputeError is propagated.
    """
    compute.create_instance_from_template.side_effect = ComputeError("quota exceeded")

    with pytest.raises(ComputeError):
        provisioner.create_runner(org_source, JobFactory())


def test_delete_runner(provisioner: RunnerProvisioner, compute: MagicMock):
    """
    arrange: A completed job with a runner.
    act: Delete the runner.
    assert: The instance of the runner is deleted.
    """
    provisioner.delete_runner(JobFactory(runner_name="runner-42", runner_group_id=4))

    compute.delete_instance.assert_called_once_with("runner-42")


def test_delete_runner_not_found(provisioner: RunnerProvisioner, compute: MagicMock):
    """
    arrange: The instance of the runner no longer exists.
    act: Delete the runner.
    assert: No error is raised.
    """
    compute.delete_instance.side_effect = InstanceNotFoundError("not found")

    provisioner.delete_runner(JobFactory(runner_name="runner-42"))

    compute.delete_instance.assert_called_once_with("runner-42")


def test_delete_runner_failure(provisioner: RunnerProvisioner, compute: MagicMock):
    """
    arrange: Compute Engine failing to delete the instance.
    act: Delete the runner.
    assert: The ComputeError is propagated.
    """
    compute.delete_instance.side_effect = ComputeError("operation failed")

    with pytest.raises(ComputeError):
        provisioner.delete_runner(JobFactory(runner_name="runner-42"))


@pytest.mark.parametrize("runner_name", [None, ""])
def test_delete_runner_without_runner(
    provisioner: RunnerProvisioner, compute: MagicMock, runner_name: str | None
):
    """
    arrange: A completed job that never got a runner.
    act: Delete the runner.
    assert: Nothing is deleted.
    """
    provisioner.delete_runner(JobFactory(runner_name=runner_name))

    compute.delete_instance.assert_not_called()


def test_delete_runner_simulate(github_client: MagicMock, compute: MagicMock):
    """
    arrange: A provisioner in simulation mode.
    act: Delete the runner.
    assert: Compute Engine is not called.
    """
    provisioner = RunnerProvisioner(github_client, compute, "runner", 1, "script", simulate=True)

    provisioner.delete_runner(JobFactory(runner_name="runner-42"))

    compute.delete_instance.assert_not_called()
