"""State management for eremos runs."""

from .schema import (
    GameSession,
    Profile,
    ShipSlot,
    RunRecord,
    ShipSection,
    LootBatch,
    CardLoot,
    SalvageItem,
    AiCores,
    TokenLoot,
    BlueprintLoot,
    RegularEncounter,
    BlockadeEncounter,
    BossEncounter,
    BattleResult,
    BossProgress,
    SectionKey,
    TransitionTarget,
    FailureReason,
)
from .catalog import Catalog, default_catalog
from .config import EngineConfig, DEFAULT_ENGINE_CONFIG, engine_config
from .store import SessionStore, JsonSessionStore, MemorySessionStore
from .event_bus import EventBus, EventType, EngineEvent

__all__ = [
    # Schema
    "GameSession",
    "Profile",
    "ShipSlot",
    "RunRecord",
    "ShipSection",
    "LootBatch",
    "CardLoot",
    "SalvageItem",
    "AiCores",
    "TokenLoot",
    "BlueprintLoot",
    "RegularEncounter",
    "BlockadeEncounter",
    "BossEncounter",
    "BattleResult",
    "BossProgress",
    "SectionKey",
    "TransitionTarget",
    "FailureReason",
    # Catalog & config
    "Catalog",
    "default_catalog",
    "EngineConfig",
    "DEFAULT_ENGINE_CONFIG",
    "engine_config",
    # Store
    "SessionStore",
    "JsonSessionStore",
    "MemorySessionStore",
    # Event Bus
    "EventBus",
    "EventType",
    "EngineEvent",
]
