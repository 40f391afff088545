# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Person identity helpers: RUT normalization, age checks and matching keys.
"""

from datetime import date
from typing import Optional, Tuple

ADULT_AGE = 18


def normalize_rut(rut: Optional[str]) -> str:
    """
    Normalize a Chilean RUT for comparison.

    Dots, dashes and whitespace are removed and the check digit is
    lowercased, so "12.345.678-K" and "12345678k" compare equal.
    """
    if not rut:
        return ""
    return "".join(ch for ch in rut if ch not in ".- \t").lower()


def normalize_name(name: Optional[str]) -> str:
    """Collapse whitespace and case in a person's name."""
    if not name:
        return ""
    return " ".join(name.split()).lower()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string, returning None when absent or invalid."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def age_on(birth_date: date, today: date) -> int:
    """Age in whole years on the given day."""
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def is_minor(birth_date: Optional[str], today: Optional[date] = None) -> bool:
    """
    True when the person is under 18.

    A missing or unparseable birth date is not treated as a minor.
    """
    born = parse_iso_date(birth_date)
    if born is None:
        return False
    return age_on(born, today or date.today()) < ADULT_AGE


def identity_key(name: Optional[str], rut: Optional[str]) -> Tuple[str, str]:
    """Name plus RUT key used when no roster id is available."""
    return (normalize_name(name), normalize_rut(rut))


def same_person(
    first_id: Optional[str], first_name: Optional[str], first_rut: Optional[str],
    second_id: Optional[str], second_name: Optional[str], second_rut: Optional[str]
) -> bool:
    """
    Decide whether two references denote the same person.

    Roster ids decide when both sides carry one; otherwise name plus RUT
    is compared, so a manual entry duplicating a roster member still
    matches.
    """
    if first_id and second_id:
        return first_id == second_id
    return identity_key(first_name, first_rut) == identity_key(second_name, second_rut)
