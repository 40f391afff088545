# SPDX-License-Identifier: Apache-2.0

"""
Reviewer correction tracking.

The tracker is the administrator's working set during one review. It is
snapshotted into a CorrectionSet when the application is rejected.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from models.entities import Correction, CorrectionSet
from models.enums import CorrectionKind


class CorrectionTracker:
    """Mutable set of corrections keyed by (kind, key)."""

    def __init__(self, corrections: Optional[Iterable[Correction]] = None):
        self._items: Dict[Tuple[str, str], Correction] = {}
        for correction in corrections or []:
            self._items[(CorrectionKind(correction.kind).value, correction.key)] = correction

    def mark(
        self,
        kind: CorrectionKind,
        key: str,
        comment: str = "",
        label: Optional[str] = None
    ) -> Correction:
        """Flag an item for correction, replacing any earlier mark on it."""
        correction = Correction(kind=kind, key=key, comment=comment, label=label)
        self._items[(CorrectionKind(kind).value, correction.key)] = correction
        return correction

    def unmark(self, kind: CorrectionKind, key: str) -> bool:
        """Remove a mark. Returns whether one was present."""
        return self._items.pop((CorrectionKind(kind).value, key), None) is not None

    def is_marked(self, kind: CorrectionKind, key: str) -> bool:
        return (CorrectionKind(kind).value, key) in self._items

    def count(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> List[Correction]:
        """Marked corrections in marking order."""
        return list(self._items.values())

    def snapshot(
        self,
        general_comment: Optional[str],
        at: datetime,
        created_by: Optional[str] = None
    ) -> CorrectionSet:
        """Freeze the current marks into a CorrectionSet."""
        return CorrectionSet(
            items=self.items(),
            general_comment=general_comment,
            created_at=at,
            created_by=created_by
        )
