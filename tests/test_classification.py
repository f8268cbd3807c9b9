"""Tests for the classification lattice — proves ordering and label parsing."""

import logging

import pytest

from copcore.models.classification import (
    ClassificationLevel,
    can_access,
    highest,
    level_of,
    level_of_checked,
)

LEVELS = list(ClassificationLevel)


class TestLatticeOrder:
    def test_exactly_four_levels(self) -> None:
        assert [l.name for l in LEVELS] == [
            "UNCLASSIFIED", "CONFIDENTIAL", "SECRET", "TOP_SECRET",
        ]

    def test_ordinals_are_total_order(self) -> None:
        assert [l.ordinal for l in LEVELS] == [0, 1, 2, 3]
        assert ClassificationLevel.UNCLASSIFIED < ClassificationLevel.CONFIDENTIAL
        assert ClassificationLevel.CONFIDENTIAL < ClassificationLevel.SECRET
        assert ClassificationLevel.SECRET < ClassificationLevel.TOP_SECRET

    @pytest.mark.parametrize("required", LEVELS)
    @pytest.mark.parametrize("clearance", LEVELS)
    def test_can_access_iff_clearance_dominates(
        self, required: ClassificationLevel, clearance: ClassificationLevel,
    ) -> None:
        assert can_access(required, clearance) == (clearance.ordinal >= required.ordinal)

    def test_abbreviations(self) -> None:
        assert [l.abbreviation for l in LEVELS] == ["U", "C", "S", "TS"]

    def test_highest_of_empty_is_unclassified(self) -> None:
        assert highest([]) == ClassificationLevel.UNCLASSIFIED

    def test_highest_picks_max(self) -> None:
        assert highest([
            ClassificationLevel.CONFIDENTIAL,
            ClassificationLevel.TOP_SECRET,
            ClassificationLevel.SECRET,
        ]) == ClassificationLevel.TOP_SECRET


class TestLevelOf:
    @pytest.mark.parametrize("label, expected", [
        ("SECRET", ClassificationLevel.SECRET),
        ("secret", ClassificationLevel.SECRET),
        ("S", ClassificationLevel.SECRET),
        ("ts", ClassificationLevel.TOP_SECRET),
        ("TOP_SECRET", ClassificationLevel.TOP_SECRET),
        ("Top Secret", ClassificationLevel.TOP_SECRET),
        ("top-secret", ClassificationLevel.TOP_SECRET),
        (" confidential ", ClassificationLevel.CONFIDENTIAL),
        ("U", ClassificationLevel.UNCLASSIFIED),
    ])
    def test_recognised_labels(self, label: str, expected: ClassificationLevel) -> None:
        assert level_of(label) == expected
        assert level_of_checked(label) == (expected, True)

    def test_level_passes_through(self) -> None:
        assert level_of(ClassificationLevel.SECRET) == ClassificationLevel.SECRET

    @pytest.mark.parametrize("label", ["", "RESTRICTED", "SECRETT", "NOFORN", None])
    def test_unknown_falls_back_to_unclassified(self, label) -> None:
        assert level_of(label) == ClassificationLevel.UNCLASSIFIED
        assert level_of_checked(label) == (ClassificationLevel.UNCLASSIFIED, False)

    def test_fallback_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="copcore.models.classification"):
            level_of("COSMIC")
        assert "COSMIC" in caplog.text
