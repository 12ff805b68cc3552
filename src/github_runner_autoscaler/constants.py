# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Constants for the application."""

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "github-runner-autoscaler"

SIGNATURE_HEADER = "x-hub-signature-256"
SIGNATURE_PREFIX = "sha256="
# "sha256=" followed by the 64 hex characters of the digest.
SIGNATURE_HEADER_LENGTH = 71
EVENT_HEADER = "x-github-event"

PING_EVENT = "ping"
WORKFLOW_JOB_EVENT = "workflow_job"

# Repository scoped runners always live in the implicit default group.
REPOSITORY_RUNNER_GROUP_ID = 1

ENTERPRISE_JIT_CONFIG_PATH = "/enterprises/{name}/actions/runners/generate-jitconfig"
ORGANIZATION_JIT_CONFIG_PATH = "/orgs/{name}/actions/runners/generate-jitconfig"
# The repository name is in the format <owner>/<repo>.
REPOSITORY_JIT_CONFIG_PATH = "/repos/{name}/actions/runners/generate-jitconfig"
RUNNER_WORK_FOLDER = "_work"

JIT_CONFIG_ATTRIBUTE_PREFIX = "jit_config"
STARTUP_SCRIPT_ATTRIBUTE = "startup-script"
# Has to match the project wide custom metadata holding the runner registration script.
DEFAULT_RUNNER_SCRIPT_ATTRIBUTE = "startup_script_register_jit_runner"

DEFAULT_RUNNER_PREFIX = "runner"
# Instance names are limited to 63 characters, the prefix leaves room for "-<64 bit job id>".
RUNNER_PREFIX_MAX_LENGTH = 42
DEFAULT_RUNNER_LABELS = ("self-hosted",)
DEFAULT_SOURCE_QUERY_PARAM = "src"
DEFAULT_CALLBACK_DELAY_SECONDS = 1
DEFAULT_DISPATCH_DEADLINE_SECONDS = 120
