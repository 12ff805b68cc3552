# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Autoscaler spawning ephemeral GitHub Actions runners on Google Compute Engine."""
