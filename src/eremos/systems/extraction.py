"""Extraction capacity: how many loot items a run may keep."""

from ..state.config import EngineConfig, engine_config
from ..state.schema import RunRecord
from .collaborators import ReputationService


class ExtractionLimitCalculator:
    """
    limit = max(0, base + reputation bonus - damaged sections)

    Base depends only on whether the starter loadout is flown; the
    reputation bonus applies to custom loadouts only.
    """

    def __init__(self, reputation: ReputationService, config: EngineConfig | None = None):
        self.reputation = reputation
        self.config = engine_config(config)

    def base_limit(self, run: RunRecord) -> int:
        if run.is_starter_deck:
            return self.config["starter_extraction_limit"]
        return self.config["custom_extraction_limit"]

    def reputation_bonus(self, run: RunRecord) -> int:
        if run.is_starter_deck:
            return 0
        return max(0, int(self.reputation.extraction_bonus()))

    def damage_penalty(self, run: RunRecord) -> int:
        return run.damaged_section_count

    def limit(self, run: RunRecord) -> int:
        return max(
            0,
            self.base_limit(run) + self.reputation_bonus(run) - self.damage_penalty(run),
        )
