"""Classification lattice — the four security levels and their ordering.

UNCLASSIFIED < CONFIDENTIAL < SECRET < TOP_SECRET, a total order.
A clearance dominates a classification when its ordinal is greater
than or equal to it. Nothing here has side effects apart from the
warning logged when an unrecognised label falls back to UNCLASSIFIED.
"""

from __future__ import annotations

import enum
import logging
from typing import Iterable, Union

logger = logging.getLogger(__name__)


class ClassificationLevel(int, enum.Enum):
    """Security level. The integer value is the lattice ordinal."""
    UNCLASSIFIED = 0
    CONFIDENTIAL = 1
    SECRET = 2
    TOP_SECRET = 3

    @property
    def ordinal(self) -> int:
        return int(self.value)

    @property
    def abbreviation(self) -> str:
        return _ABBREVIATIONS[self]

    def __str__(self) -> str:
        return self.name


_ABBREVIATIONS: dict[ClassificationLevel, str] = {
    ClassificationLevel.UNCLASSIFIED: "U",
    ClassificationLevel.CONFIDENTIAL: "C",
    ClassificationLevel.SECRET: "S",
    ClassificationLevel.TOP_SECRET: "TS",
}

_LOOKUP: dict[str, ClassificationLevel] = {}
for _level in ClassificationLevel:
    _LOOKUP[_level.name] = _level
    _LOOKUP[_ABBREVIATIONS[_level]] = _level


def _normalise(label: str) -> str:
    return label.strip().upper().replace("-", "_").replace(" ", "_")


def level_of_checked(
    label: Union[str, ClassificationLevel, None],
) -> tuple[ClassificationLevel, bool]:
    """Resolve a label and report whether it was recognised.

    Returns (level, recognised). Unrecognised input resolves to
    UNCLASSIFIED with recognised=False so the caller can audit it.
    """
    if isinstance(label, ClassificationLevel):
        return label, True
    if label is None:
        return ClassificationLevel.UNCLASSIFIED, False
    level = _LOOKUP.get(_normalise(str(label)))
    if level is None:
        return ClassificationLevel.UNCLASSIFIED, False
    return level, True


def level_of(label: Union[str, ClassificationLevel, None]) -> ClassificationLevel:
    """Map a canonical name or abbreviation to a level.

    Unknown input maps to UNCLASSIFIED rather than failing. This is a
    silent downgrade of whatever the caller meant, so it is logged.
    """
    level, recognised = level_of_checked(label)
    if not recognised:
        logger.warning(
            "Unrecognised classification label %r; treating as UNCLASSIFIED",
            label,
        )
    return level


def can_access(required: ClassificationLevel, clearance: ClassificationLevel) -> bool:
    """True iff the clearance dominates the required level."""
    return clearance.ordinal >= required.ordinal


def highest(levels: Iterable[ClassificationLevel]) -> ClassificationLevel:
    """Least upper bound of a set of levels (UNCLASSIFIED when empty)."""
    return max(levels, default=ClassificationLevel.UNCLASSIFIED)
