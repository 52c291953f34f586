# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the emergency SOS engine.

This package contains pure business logic functions with no side effects:
proximity ranking, the incident state machine, authorization rules and
fan-out record builders.
"""
