# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Clients for the Google Cloud services used by the autoscaler."""
