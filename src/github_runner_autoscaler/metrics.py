#  Copyright 2025 Canonical Ltd.
#  See LICENSE file for licensing details.

"""Module for collecting metrics of the webhook and callback handling."""

from prometheus_client import Counter, Histogram

EVENT = "event"
ACTION = "action"
DECISION = "decision"
KIND = "kind"
OUTCOME = "outcome"

WEBHOOK_EVENTS_TOTAL = Counter(
    name="webhook_events_total",
    documentation="The number of verified webhooks by event, action and routing decision.",
    labelnames=[EVENT, ACTION, DECISION],
)
CALLBACK_TASKS_TOTAL = Counter(
    name="callback_tasks_total",
    documentation="The number of callback tasks submitted to the task queue.",
    labelnames=[KIND],
)
CALLBACKS_TOTAL = Counter(
    name="callbacks_total",
    documentation="The number of handled callbacks by outcome.",
    labelnames=[KIND, OUTCOME],
)
CREATE_VM_DURATION_SECONDS = Histogram(
    name="create_vm_duration_seconds",
    documentation="Time taken in seconds to register a runner and create its instance.",
    buckets=[5, 15, 30, 60, 2 * 60, 5 * 60, float("inf")],
)
DELETE_VM_DURATION_SECONDS = Histogram(
    name="delete_vm_duration_seconds",
    documentation="Time taken in seconds for instances to be deleted.",
    buckets=[5, 15, 30, 60, 2 * 60, 5 * 60, float("inf")],
)
