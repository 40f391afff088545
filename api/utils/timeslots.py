# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Time-of-day and calendar date canonicalization for appointment slots.
"""

import re
from datetime import date, datetime
from typing import Tuple

# Hourly appointment slots offered by the municipality
STANDARD_HOURS: Tuple[str, ...] = (
    "09:00", "10:00", "11:00", "12:00",
    "14:00", "15:00", "16:00", "17:00", "18:00",
)

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?$")
_SEPARATORS = re.compile(r"[\s.:hH,-]+")


def normalize_time(value: str) -> str:
    """
    Canonicalize a time of day to zero-padded 24h ``HH:MM``.

    Accepts ``HH:MM``, ``HH:MM:SS`` (seconds are dropped), ``H:M``, a bare
    hour (``"9"``), compact digits (``"0930"``) and loosely separated input
    (``"9.30"``, ``"9 30"``, ``"9h30"``). Idempotent on its own output.

    Raises:
        ValueError: If the value is empty, non-numeric or out of range.
    """
    if value is None:
        raise ValueError("Time is required")

    text = str(value).strip()
    if not text:
        raise ValueError("Time is required")

    match = _CLOCK_PATTERN.match(text)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
    else:
        parts = [part for part in _SEPARATORS.split(text) if part]
        if not parts or not all(part.isdigit() for part in parts):
            raise ValueError(f"Invalid time: {value!r}")
        if len(parts) == 1:
            digits = parts[0]
            if len(digits) <= 2:
                hours, minutes = int(digits), 0
            elif len(digits) <= 4:
                hours, minutes = int(digits[:-2]), int(digits[-2:])
            else:
                raise ValueError(f"Invalid time: {value!r}")
        else:
            hours, minutes = int(parts[0]), int(parts[1])

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {value!r}")

    return f"{hours:02d}:{minutes:02d}"


def normalize_date(value) -> str:
    """Canonical ``YYYY-MM-DD`` form of a date or ISO date string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Date is required")
    try:
        return date.fromisoformat(value.strip()[:10]).isoformat()
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}, expected YYYY-MM-DD")
