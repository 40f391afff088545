# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Fixtures for acceptance tests: the full Flask application over in-memory
services with a frozen clock.
"""

import os
from datetime import datetime, timezone
from itertools import count

import pytest

os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['STORAGE_BACKEND'] = 'memory'

from app import create_app  # noqa: E402
from services.container import build_memory_container  # noqa: E402

FROZEN_AT = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def services():
    sequence = count(1)
    return build_memory_container(
        clock=lambda: FROZEN_AT,
        id_factory=lambda: f"id-{next(sequence)}"
    )


@pytest.fixture
def test_client(services):
    app = create_app(services)
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def roster():
    """Founding members f1..f15, all adults."""
    return [
        {"id": f"f{i}", "name": f"Fundador {i}", "rut": f"12.000.{i:03d}-{i % 10}", "birthDate": f"{1960 + i}-01-20"}
        for i in range(1, 16)
    ]
