"""In-memory collaborators for demos and tests."""

from .sandbox import (
    TableLootGenerator,
    ThreatMeter,
    LevelledReputationService,
    RecordingMissionTracker,
    battle_won,
    battle_lost,
    starter_slot,
    custom_slot,
    demo_profile,
)

__all__ = [
    "TableLootGenerator",
    "ThreatMeter",
    "LevelledReputationService",
    "RecordingMissionTracker",
    "battle_won",
    "battle_lost",
    "starter_slot",
    "custom_slot",
    "demo_profile",
]
