# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the certification workflow.

This package contains the business rules: the application state machine,
scheduling rules, the assembly validation protocol and correction tracking.
Functions here have no I/O and are testable without external services.
"""
