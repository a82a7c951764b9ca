"""
Gameplay constants for the run engine.

Every value can be overridden per coordinator; missing keys fall back to
DEFAULT_ENGINE_CONFIG.
"""

from typing import TypedDict


class EngineConfig(TypedDict, total=False):
    """Engine tuning."""
    starter_extraction_limit: int  # Loot kept by the starter loadout (slot 0)
    custom_extraction_limit: int  # Loot kept by any other loadout
    default_section_hull: int  # Hull for slots without fitted components
    default_damaged_threshold: int
    escape_damage_min: int  # Used when a hostile defines no escape damage
    escape_damage_max: int
    drone_damage_hull_ratio: float  # Below this hull fraction drones are hit on return
    blockade_fallback_hostile: str  # Used when a tier roster is empty
    clearance_item_id: str  # Tactical item that bypasses the blockade roll
    mia_recovery_floor: int
    mia_recovery_multiplier: float


DEFAULT_ENGINE_CONFIG: EngineConfig = {
    "starter_extraction_limit": 3,
    "custom_extraction_limit": 6,
    "default_section_hull": 8,
    "default_damaged_threshold": 4,
    "escape_damage_min": 2,
    "escape_damage_max": 2,
    "drone_damage_hull_ratio": 0.5,
    "blockade_fallback_hostile": "Heavy Cruiser Defense Pattern",
    "clearance_item_id": "ITEM_EXTRACT",
    "mia_recovery_floor": 500,
    "mia_recovery_multiplier": 0.5,
}


def engine_config(overrides: EngineConfig | None = None) -> EngineConfig:
    """Defaults merged with any overrides."""
    config = DEFAULT_ENGINE_CONFIG.copy()
    if overrides:
        config.update(overrides)
    return config
