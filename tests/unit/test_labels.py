# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Test for the label matching."""

import pytest

from github_runner_autoscaler.labels import (
    CapabilityLabel,
    DirectiveLabel,
    MagicLabel,
    get_magic_label_value,
    has_all_labels,
    is_magic_label,
    parse_directives,
    parse_label,
)


@pytest.mark.parametrize(
    "label, expected",
    [
        pytest.param("self-hosted", CapabilityLabel("self-hosted"), id="capability"),
        pytest.param(
            "@machine:e2-standard-4",
            DirectiveLabel(MagicLabel.MACHINE, "e2-standard-4"),
            id="machine",
        ),
        pytest.param("@machine:", CapabilityLabel("@machine:"), id="empty value"),
        pytest.param("@disk:100", CapabilityLabel("@disk:100"), id="unknown key"),
        pytest.param("x@machine:e2", CapabilityLabel("x@machine:e2"), id="not at start"),
    ],
)
def test_parse_label(label: str, expected):
    """
    arrange: Given a raw label.
    act: Parse the label.
    assert: Only known magic labels become directives.
    """
    assert parse_label(label) == expected


def test_is_magic_label():
    """
    arrange: A magic and a capability label.
    act: Check the labels.
    assert: Only the magic label is detected.
    """
    assert is_magic_label("@machine:n2-standard-2")
    assert not is_magic_label("linux")


def test_parse_directives_first_wins():
    """
    arrange: Labels with two machine labels.
    act: Parse the directives.
    assert: The first machine label wins.
    """
    directives = parse_directives(["self-hosted", "@machine:e2-small", "@machine:e2-large"])

    assert directives == {MagicLabel.MACHINE: "e2-small"}


@pytest.mark.parametrize(
    "labels, expected",
    [
        pytest.param(["self-hosted", "@machine:c3-standard-8"], "c3-standard-8", id="present"),
        pytest.param(["self-hosted"], None, id="absent"),
        pytest.param([], None, id="no labels"),
    ],
)
def test_get_magic_label_value(labels: list[str], expected: str | None):
    """
    arrange: Given job labels.
    act: Get the machine label value.
    assert: The value of the machine label is returned.
    """
    assert get_magic_label_value(labels, MagicLabel.MACHINE) == expected


@pytest.mark.parametrize(
    "labels, required, expected",
    [
        pytest.param(["self-hosted", "linux"], ["self-hosted"], (True, []), id="subset"),
        pytest.param(["self-hosted"], ["self-hosted", "linux"], (False, ["linux"]), id="missing"),
        pytest.param(
            [], ["self-hosted", "linux"], (False, ["self-hosted", "linux"]), id="missing order"
        ),
        pytest.param(["self-hosted"], ["Self-Hosted"], (False, ["Self-Hosted"]), id="case"),
        pytest.param(["self-hosted"], ["@machine:e2-small"], (True, []), id="magic required"),
        pytest.param(["self-hosted"], [], (True, []), id="nothing required"),
    ],
)
def test_has_all_labels(labels: list[str], required: list[str], expected):
    """
    arrange: Given job labels and required labels.
    act: Check the labels.
    assert: Missing non-magic labels are reported in the required order.
    """
    assert has_all_labels(labels, required) == expected
