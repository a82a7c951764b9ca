"""
In-memory collaborators for the run engine.

Small, seeded stand-ins for the loot tables, threat meter, reputation
service, and mission tracker that the full game provides. Used by the
CLI demo and by tests.
"""

import logging
import math

from ..state.catalog import Catalog, default_catalog
from ..state.schema import (
    AiCores,
    BattleResult,
    BlueprintExhausted,
    BlueprintLoot,
    CardLoot,
    CombatReputation,
    DeckEntry,
    DroneSlot,
    Lane,
    LootBatch,
    LootSource,
    Profile,
    Rarity,
    RunRecord,
    SalvageItem,
    SectionKey,
    SectionLoadout,
    ShipSlot,
)
from ..tools.rng import SeededRng

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Loot
# -----------------------------------------------------------------------------

CARD_POOL: dict[Rarity, list[tuple[str, str]]] = {
    Rarity.COMMON: [("LASER_BLAST", "Laser Blast"), ("SHIELD_BOOST", "Shield Boost")],
    Rarity.UNCOMMON: [("OVERCHARGE", "Overcharge"), ("TARGET_LOCK", "Target Lock")],
    Rarity.RARE: [("BARRAGE", "Barrage")],
    Rarity.MYTHIC: [("NEMESIS_CORE", "Nemesis Core")],
}

BLUEPRINT_POOL: dict[str, list[tuple[str, Rarity]]] = {
    "light": [("DART", Rarity.COMMON), ("WISP", Rarity.UNCOMMON)],
    "medium": [("WARDEN", Rarity.UNCOMMON), ("LANCER", Rarity.RARE)],
    "heavy": [("BASTION", Rarity.RARE), ("LEVIATHAN", Rarity.MYTHIC)],
}

CARDS_BY_DIFFICULTY = {"easy": 1, "normal": 2, "hard": 3, "boss": 3}


class TableLootGenerator:
    """Draws salvage and blueprints from fixed tables with a seeded RNG."""

    def __init__(self, rng: SeededRng | None = None):
        self.rng = rng or SeededRng()

    def _roll_rarity(self, difficulty: str) -> Rarity:
        roll = self.rng.random() * 100
        if difficulty in ("hard", "boss"):
            roll += 25
        if roll >= 115:
            return Rarity.MYTHIC
        if roll >= 90:
            return Rarity.RARE
        if roll >= 60:
            return Rarity.UNCOMMON
        return Rarity.COMMON

    def generate_salvage(self, deck: list[str], tier: int, difficulty: str) -> LootBatch:
        items = []
        for _ in range(CARDS_BY_DIFFICULTY.get(difficulty, 2)):
            rarity = self._roll_rarity(difficulty)
            card_id, name = self.rng.select(CARD_POOL[rarity])
            items.append(CardLoot(
                card_id=card_id, name=name, rarity=rarity, source=LootSource.COMBAT_SALVAGE,
            ))
        items.append(SalvageItem(
            item_id=f"SALVAGE_T{tier}",
            name="Hull Plating Scrap",
            credit_value=25 * tier + self.rng.random_int_inclusive(0, 25),
            source=LootSource.COMBAT_SALVAGE,
        ))
        if difficulty in ("hard", "boss"):
            items.append(AiCores(amount=1, source=LootSource.COMBAT_SALVAGE))
        return LootBatch(items=items)

    def generate_blueprint(
        self, category_id: str, tier: int, unlocked_ids: list[str]
    ) -> BlueprintLoot | BlueprintExhausted:
        available = [
            (bp_id, rarity)
            for bp_id, rarity in BLUEPRINT_POOL.get(category_id, [])
            if bp_id not in unlocked_ids
        ]
        choice = self.rng.select(available)
        if choice is None:
            return BlueprintExhausted(category_id=category_id, tier=tier)
        bp_id, rarity = choice
        return BlueprintLoot(
            blueprint_id=bp_id,
            rarity=rarity,
            payload={"category": category_id, "tier": tier},
        )


# -----------------------------------------------------------------------------
# Threat, reputation, missions
# -----------------------------------------------------------------------------

class ThreatMeter:
    """Detection level for one map, clamped to 0-100."""

    def __init__(self, level: float = 0.0):
        self.level = level
        self.signal_locked = False
        self.resets = 0
        self.log: list[tuple[float, str]] = []

    def get_current_level(self) -> float:
        return self.level

    def adjust_level(self, delta: float, reason: str) -> None:
        self.level = max(0.0, min(100.0, self.level + delta))
        self.log.append((delta, reason))
        if delta > 0:
            self.signal_locked = True

    def reset_tracking(self) -> None:
        self.signal_locked = False
        self.resets += 1


class LevelledReputationService:
    """
    Reputation by level.

    Each rank in bonus_ranks at or below the current level adds one to the
    extraction limit. Combat reputation is the loadout value up to the
    tier cap, scaled by the hostile's multiplier.
    """

    def __init__(
        self,
        level: int = 0,
        bonus_ranks: tuple[int, ...] = (3, 6, 9),
        catalog: Catalog | None = None,
    ):
        self.level = level
        self.bonus_ranks = bonus_ranks
        self.catalog = catalog or default_catalog()

    def extraction_bonus(self) -> int:
        return sum(1 for rank in self.bonus_ranks if rank <= self.level)

    def compute_combat_reputation(
        self, loadout_value: int, hostile_id: str, tier_cap: int
    ) -> CombatReputation:
        hostile = self.catalog.hostile(hostile_id)
        multiplier = hostile.reputation_multiplier if hostile else 1.0
        counted = min(loadout_value, tier_cap)
        return CombatReputation(
            rep_earned=math.floor(counted * multiplier),
            was_capped=loadout_value > tier_cap,
        )


class RecordingMissionTracker:
    """Keeps every recorded mission event for inspection."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def record_event(self, event_type: str, payload: dict) -> None:
        logger.debug("Mission event %s: %s", event_type, payload)
        self.events.append((event_type, payload))

    def of_type(self, event_type: str) -> list[dict]:
        return [payload for kind, payload in self.events if kind == event_type]


# -----------------------------------------------------------------------------
# Battles & profiles
# -----------------------------------------------------------------------------

def battle_won(run: RunRecord, damage: dict[SectionKey, int] | None = None) -> BattleResult:
    """A player victory; damage is subtracted from the run's current section hull."""
    damage = damage or {}
    return BattleResult(
        winner_id="player1",
        section_hull={
            key: max(0, section.hull - damage.get(key, 0))
            for key, section in run.sections.items()
        },
    )


def battle_lost() -> BattleResult:
    return BattleResult(winner_id="player2")


def starter_slot() -> ShipSlot:
    return ShipSlot(
        id=0,
        name="Starter Corvette",
        drones=[DroneSlot(name="Dart"), DroneSlot(name="Wisp")],
        decklist=[DeckEntry(card_id="LASER_BLAST", quantity=4)],
    )


def custom_slot(slot_id: int = 1, loadout_value: int = 1500) -> ShipSlot:
    return ShipSlot(
        id=slot_id,
        name=f"Custom Frigate {slot_id}",
        sections={
            SectionKey.BRIDGE: SectionLoadout(
                component_id="BRIDGE_MK2", name="Bridge Mk II", max_hull=10,
                damaged_threshold=5, lane=Lane.LEFT,
            ),
            SectionKey.POWER_CELL: SectionLoadout(
                component_id="POWER_CELL_MK1", name="Power Cell", max_hull=8,
                damaged_threshold=4, lane=Lane.MIDDLE,
            ),
            SectionKey.DRONE_CONTROL_HUB: SectionLoadout(
                component_id="DRONE_HUB_MK1", name="Drone Control Hub", max_hull=8,
                damaged_threshold=4, lane=Lane.RIGHT,
            ),
        },
        drones=[DroneSlot(name="Warden"), DroneSlot(name="Lancer"), DroneSlot(name="Dart")],
        decklist=[
            DeckEntry(card_id="OVERCHARGE", quantity=2),
            DeckEntry(card_id="TARGET_LOCK", quantity=2),
        ],
        loadout_value=loadout_value,
    )


def demo_profile(credits: int = 1000) -> Profile:
    """A profile with the starter slot, one custom slot, and one clearance item."""
    return Profile(
        name="Demo Commander",
        credits=credits,
        inventory={"OVERCHARGE": 2, "TARGET_LOCK": 2, "LASER_BLAST": 4},
        tactical_items={"ITEM_EXTRACT": 1},
        ship_slots=[starter_slot(), custom_slot()],
    )
