# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Matching of workflow job labels.

Besides the ordinary capability labels (e.g. "self-hosted") a job can request
magic labels of the form "@<key>:<value>". Magic labels carry routing metadata,
such as the machine type of the instance to spawn, instead of a capability the
runner has to provide. They are therefore never required to match.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence, TypeAlias


class MagicLabel(str, Enum):
    """The known magic label keys.

    Attributes:
        MACHINE: The Compute Engine machine type of the runner instance.
    """

    MACHINE = "machine"


_MAGIC_LABEL_PATTERN = re.compile(
    "^@(?P<key>" + "|".join(re.escape(label.value) for label in MagicLabel) + "):(?P<value>.+)$"
)


@dataclass(frozen=True)
class CapabilityLabel:
    """A label the runner has to provide.

    Attributes:
        name: The label.
    """

    name: str


@dataclass(frozen=True)
class DirectiveLabel:
    """A magic label.

    Attributes:
        key: The magic label key.
        value: The requested value.
    """

    key: MagicLabel
    value: str


Label: TypeAlias = CapabilityLabel | DirectiveLabel


def parse_label(label: str) -> Label:
    """Parse a raw job label.

    Args:
        label: The label as found in the workflow job.

    Returns:
        A directive for magic labels, a capability otherwise.
    """
    if match := _MAGIC_LABEL_PATTERN.match(label):
        return DirectiveLabel(key=MagicLabel(match.group("key")), value=match.group("value"))
    return CapabilityLabel(name=label)


def is_magic_label(label: str) -> bool:
    """Check whether a label is a magic label.

    Args:
        label: The label.

    Returns:
        Whether the label is a magic label.
    """
    return isinstance(parse_label(label), DirectiveLabel)


def parse_directives(labels: Iterable[str]) -> dict[MagicLabel, str]:
    """Collect the magic label values, the first occurrence of a key wins.

    Args:
        labels: The job labels.

    Returns:
        The magic label values by key.
    """
    directives: dict[MagicLabel, str] = {}
    for label in map(parse_label, labels):
        if isinstance(label, DirectiveLabel):
            directives.setdefault(label.key, label.value)
    return directives


def get_magic_label_value(labels: Iterable[str], key: MagicLabel) -> str | None:
    """Get the value of a magic label.

    Args:
        labels: The job labels.
        key: The magic label key.

    Returns:
        The value of the first matching magic label or None.
    """
    return parse_directives(labels).get(key)


def has_all_labels(labels: Iterable[str], required: Sequence[str]) -> tuple[bool, list[str]]:
    """Check whether all required labels are in the job labels.

    Required magic labels are always considered satisfied. Labels are compared case-sensitive.

    Args:
        labels: The job labels.
        required: The labels the job needs to have.

    Returns:
        Whether all labels were found and the missing labels in the order they were required.
    """
    present = set(labels)
    missing = [
        label for label in required if not is_magic_label(label) and label not in present
    ]
    return not missing, missing
