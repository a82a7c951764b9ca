"""
Interfaces the engine calls out to.

Loot content, threat tracking, reputation, and mission telemetry are owned
elsewhere; the coordinator receives implementations at construction.
See eremos.simulation.sandbox for in-memory versions.
"""

from enum import Enum
from typing import Protocol, runtime_checkable

from ..state.schema import BlueprintExhausted, BlueprintLoot, CombatReputation, LootBatch


class MissionEvent(str, Enum):
    COMBAT_WIN = "COMBAT_WIN"
    EXTRACTION_COMPLETE = "EXTRACTION_COMPLETE"
    CREDITS_EARNED = "CREDITS_EARNED"
    POI_LOOTED = "POI_LOOTED"
    BOSS_DEFEATED = "BOSS_DEFEATED"


@runtime_checkable
class LootGenerator(Protocol):
    """Generates loot content; only the shape of its output is relied on."""

    def generate_salvage(self, deck: list[str], tier: int, difficulty: str) -> LootBatch:
        ...

    def generate_blueprint(
        self, category_id: str, tier: int, unlocked_ids: list[str]
    ) -> BlueprintLoot | BlueprintExhausted:
        ...


@runtime_checkable
class ThreatTracker(Protocol):
    """Accumulated detection for the current map."""

    def get_current_level(self) -> float:
        ...

    def adjust_level(self, delta: float, reason: str) -> None:
        ...

    def reset_tracking(self) -> None:
        """Release the signal lock held by pursuing hostiles."""
        ...


@runtime_checkable
class ReputationService(Protocol):

    def extraction_bonus(self) -> int:
        ...

    def compute_combat_reputation(
        self, loadout_value: int, hostile_id: str, tier_cap: int
    ) -> CombatReputation:
        ...


@runtime_checkable
class MissionRecorder(Protocol):
    """Fire-and-forget telemetry; results are never inspected."""

    def record_event(self, event_type: str, payload: dict) -> None:
        ...
