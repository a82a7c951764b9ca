"""Tests for the extraction capacity calculation."""

import pytest

from eremos.simulation.sandbox import LevelledReputationService
from eremos.state.schema import RunRecord, SectionKey, SectionThresholds, ShipSection
from eremos.systems.extraction import ExtractionLimitCalculator


def make_run(slot_id: int, damaged: int = 0, sections: int = 3) -> RunRecord:
    keys = list(SectionKey)[:sections]
    return RunRecord(
        ship_slot_id=slot_id,
        sections={
            key: ShipSection(
                key=key,
                hull=2 if index < damaged else 8,
                max_hull=8,
                thresholds=SectionThresholds(damaged=4),
            )
            for index, key in enumerate(keys)
        },
    )


class FixedBonus:
    def __init__(self, bonus: int):
        self.bonus = bonus
        self.calls = 0

    def extraction_bonus(self) -> int:
        self.calls += 1
        return self.bonus

    def compute_combat_reputation(self, loadout_value, hostile_id, tier_cap):
        raise AssertionError("not used")


class TestExtractionLimit:
    """Test base limits, reputation bonus, and damage penalty."""

    def test_starter_base(self):
        calc = ExtractionLimitCalculator(FixedBonus(0))
        assert calc.limit(make_run(0)) == 3

    def test_custom_base(self):
        calc = ExtractionLimitCalculator(FixedBonus(0))
        assert calc.limit(make_run(1)) == 6

    def test_bonus_only_for_custom(self):
        """The starter loadout never receives the reputation bonus."""
        bonus = FixedBonus(2)
        calc = ExtractionLimitCalculator(bonus)

        assert calc.limit(make_run(0)) == 3
        assert calc.limit(make_run(1)) == 8

    def test_damage_penalty_any_loadout(self):
        calc = ExtractionLimitCalculator(FixedBonus(2))

        assert calc.limit(make_run(0, damaged=1)) == 2
        assert calc.limit(make_run(1, damaged=1)) == 7

    def test_never_negative(self):
        """Damage beyond base plus bonus floors at zero."""
        calc = ExtractionLimitCalculator(
            FixedBonus(0), config={"starter_extraction_limit": 1}
        )
        assert calc.limit(make_run(0, damaged=3)) == 0

    def test_pure(self):
        calc = ExtractionLimitCalculator(FixedBonus(1))
        run = make_run(1, damaged=2)
        assert calc.limit(run) == calc.limit(run) == 5

    def test_config_overrides(self):
        calc = ExtractionLimitCalculator(
            FixedBonus(0),
            config={"starter_extraction_limit": 2, "custom_extraction_limit": 10},
        )
        assert calc.limit(make_run(0)) == 2
        assert calc.limit(make_run(1)) == 10

    @pytest.mark.parametrize("level,expected", [(0, 0), (3, 1), (6, 2), (9, 3), (12, 3)])
    def test_levelled_bonus(self, level, expected):
        service = LevelledReputationService(level=level, bonus_ranks=(3, 6, 9))
        assert service.extraction_bonus() == expected
