# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

Maps domain errors and request validation failures to problem responses.
"""
