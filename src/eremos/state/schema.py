"""
Pydantic models for eremos run state.

All state is versioned for migration support.
Designed to serialize to JSON so that staged outcomes (pending loot,
pending blueprints, blockade extraction) survive a restart between the
two calls of a two-step operation.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator


def generate_id() -> str:
    return str(uuid4())[:8]


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class SectionKey(str, Enum):
    BRIDGE = "bridge"
    POWER_CELL = "power_cell"
    DRONE_CONTROL_HUB = "drone_control_hub"


class Lane(str, Enum):
    LEFT = "left"
    MIDDLE = "middle"
    RIGHT = "right"


class Rarity(str, Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    MYTHIC = "Mythic"


class LootSource(str, Enum):
    """Provenance tag carried by every collected loot item."""
    COMBAT_SALVAGE = "combat_salvage"  # Revealed after a won battle
    POI = "poi"                        # Looted from a point of interest
    BLUEPRINT_POI = "blueprint_poi"    # Accepted from a blueprint reward step
    SALVAGE_BONUS = "salvage_bonus"    # Substitute for an exhausted blueprint


class SlotStatus(str, Enum):
    ACTIVE = "active"
    MIA = "mia"      # Lost on a failed run, recoverable for credits
    EMPTY = "empty"


class OutcomeType(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"


class OutcomeStage(str, Enum):
    """Where a combat sits between the battle ending and the player moving on."""
    AWAITING_OUTCOME = "awaiting_outcome"
    PENDING_LOOT_REVEAL = "pending_loot_reveal"
    PENDING_BLUEPRINT = "pending_blueprint"
    PENDING_BOSS_REWARD = "pending_boss_reward"
    DEFEATED = "defeated"


class TransitionTarget(str, Enum):
    RESUME_RUN = "resume_run"      # Back to the tactical map
    AUTO_EXTRACT = "auto_extract"  # Back to the map, extraction triggers itself
    POST_COMBAT = "post_combat"    # Stay for the blueprint accept step
    HUB = "hub"                    # Boss fights return to the hangar
    FAILED_RUN = "failed_run"      # MIA screen, carries a failure reason


class FailureReason(str, Enum):
    COMBAT = "combat"
    BOSS = "boss"
    ABANDON = "abandon"


class ExtractionAction(str, Enum):
    SELECT_LOOT = "select_loot"
    EXTRACTED = "extracted"


# -----------------------------------------------------------------------------
# Ship Sections
# -----------------------------------------------------------------------------

class SectionThresholds(BaseModel):
    """Hull values at or below which a section counts as damaged/critical."""
    damaged: int = 4
    critical: int = 0


class ShipSection(BaseModel):
    """Hull bookkeeping for one ship component."""
    key: SectionKey
    name: str = ""
    hull: int = Field(ge=0)
    max_hull: int = Field(ge=0)
    thresholds: SectionThresholds = Field(default_factory=SectionThresholds)
    lane: Lane = Lane.MIDDLE

    @model_validator(mode="after")
    def _hull_within_max(self) -> "ShipSection":
        if self.hull > self.max_hull:
            raise ValueError(
                f"{self.key.value} hull {self.hull} exceeds max hull {self.max_hull}"
            )
        return self

    @property
    def is_damaged(self) -> bool:
        return self.hull <= self.thresholds.damaged

    @property
    def is_critical(self) -> bool:
        return self.hull <= self.thresholds.critical

    def with_hull(self, hull: int) -> "ShipSection":
        """Copy of this section with hull clamped to [0, max_hull]."""
        return self.model_copy(update={"hull": max(0, min(hull, self.max_hull))})


def total_hull(sections: dict[SectionKey, ShipSection]) -> int:
    return sum(s.hull for s in sections.values())


def total_max_hull(sections: dict[SectionKey, ShipSection]) -> int:
    return sum(s.max_hull for s in sections.values())


def damaged_count(sections: dict[SectionKey, ShipSection]) -> int:
    return sum(1 for s in sections.values() if s.is_damaged)


# -----------------------------------------------------------------------------
# Loot
# -----------------------------------------------------------------------------

class _LootBase(BaseModel):
    """Loot items are immutable once created; tagging returns a copy."""
    model_config = ConfigDict(frozen=True)

    source: LootSource | None = None

    def tagged(self, source: LootSource):
        """Return this item carrying a provenance tag, keeping any existing one."""
        if self.source is not None:
            return self
        return self.model_copy(update={"source": source})


class CardLoot(_LootBase):
    type: Literal["card"] = "card"
    card_id: str
    name: str
    rarity: Rarity = Rarity.COMMON


class SalvageItem(_LootBase):
    type: Literal["salvage_item"] = "salvage_item"
    item_id: str
    name: str = ""
    credit_value: int = Field(default=0, ge=0)


class AiCores(_LootBase):
    type: Literal["ai_cores"] = "ai_cores"
    amount: int = Field(ge=0)


class TokenLoot(_LootBase):
    type: Literal["token"] = "token"
    token_type: str
    amount: int = Field(default=1, ge=0)


class BlueprintLoot(_LootBase):
    type: Literal["blueprint"] = "blueprint"
    blueprint_id: str
    blueprint_type: str = "drone"
    rarity: Rarity = Rarity.COMMON
    payload: dict = Field(default_factory=dict)


LootItem = Annotated[
    Union[CardLoot, SalvageItem, AiCores, TokenLoot, BlueprintLoot],
    Field(discriminator="type"),
]


class BlueprintExhausted(BaseModel):
    """Marker returned when every blueprint in a category is already unlocked."""
    category_id: str
    tier: int = 1


class LootBatch(BaseModel):
    """An ordered batch of loot, as produced by one generator call or a merge."""
    items: list[LootItem] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def cards(self) -> list[CardLoot]:
        return [i for i in self.items if isinstance(i, CardLoot)]

    @property
    def salvage_items(self) -> list[SalvageItem]:
        return [i for i in self.items if isinstance(i, SalvageItem)]

    @property
    def credit_value(self) -> int:
        return sum(i.credit_value for i in self.salvage_items)

    @property
    def ai_cores(self) -> int:
        return sum(i.amount for i in self.items if isinstance(i, AiCores))

    def merged(self, other: "LootBatch") -> "LootBatch":
        """This batch's items first, then the other's."""
        return LootBatch(items=[*self.items, *other.items])

    def with_bonus_credits(self, amount: int) -> "LootBatch":
        """
        Fold bonus credits into the first salvage item.

        Appends a standalone salvage item when the batch has none.
        """
        items = list(self.items)
        for index, item in enumerate(items):
            if isinstance(item, SalvageItem):
                items[index] = item.model_copy(
                    update={"credit_value": item.credit_value + amount}
                )
                return LootBatch(items=items)

        items.append(SalvageItem(
            item_id="SALVAGE_BONUS",
            name="Recovered Salvage",
            credit_value=amount,
            source=LootSource.SALVAGE_BONUS,
        ))
        return LootBatch(items=items)


def extracted_credits(loot: list) -> int:
    """Credits banked at extraction: salvage item values only."""
    return sum(i.credit_value for i in loot if isinstance(i, SalvageItem))


def extracted_ai_cores(loot: list) -> int:
    return sum(i.amount for i in loot if isinstance(i, AiCores))


# -----------------------------------------------------------------------------
# Encounters & Battle
# -----------------------------------------------------------------------------

class _EncounterBase(BaseModel):
    tier: int = 1
    difficulty: str = "normal"
    starting_hull: int | None = None
    hostile_deck: list[str] = Field(default_factory=list)

    @property
    def is_blockade(self) -> bool:
        return False

    @property
    def is_boss(self) -> bool:
        return False


class RegularEncounter(_EncounterBase):
    """A hostile met on the map, optionally guarding a PoI."""
    kind: Literal["regular"] = "regular"
    ai_id: str
    reward_type: str | None = None  # e.g. DRONE_BLUEPRINT_LIGHT for blueprint PoIs


class BlockadeEncounter(_EncounterBase):
    """A hostile intercepting the extraction attempt."""
    kind: Literal["blockade"] = "blockade"
    ai_id: str

    @property
    def is_blockade(self) -> bool:
        return True


class BossEncounter(_EncounterBase):
    """A boss fight launched from the hub, outside any map run."""
    kind: Literal["boss"] = "boss"
    boss_id: str
    ai_id: str = ""

    @property
    def is_boss(self) -> bool:
        return True


Encounter = Annotated[
    Union[RegularEncounter, BlockadeEncounter, BossEncounter],
    Field(discriminator="kind"),
]


class BattleResult(BaseModel):
    """What the combat engine reports once a battle ends."""
    winner_id: str
    player_id: str = "player1"
    section_hull: dict[SectionKey, int] = Field(default_factory=dict)

    @property
    def player_won(self) -> bool:
        return self.winner_id == self.player_id


class CombatReputation(BaseModel):
    rep_earned: int = Field(ge=0)
    was_capped: bool = False


class CombatReputationEntry(BaseModel):
    hostile_id: str
    rep_earned: int = 0
    was_capped: bool = False


class BossReward(BaseModel):
    credits: int = 0
    ai_cores: int = 0
    reputation: int = 0


class StagedBossReward(BaseModel):
    boss_id: str
    reward: BossReward
    is_first_victory: bool = False


# -----------------------------------------------------------------------------
# Interruptions
# -----------------------------------------------------------------------------

class Waypoint(BaseModel):
    q: int
    r: int


class PoiCombatInterruption(BaseModel):
    """Combat triggered while at a point of interest."""
    kind: Literal["poi_combat"] = "poi_combat"
    q: int
    r: int
    poi_name: str = ""
    pack_type: str | None = None
    from_salvage: bool = False  # Combat broke out mid-salvage
    salvage_fully_looted: bool = False
    remaining_waypoints: list[Waypoint] = Field(default_factory=list)


class SalvageInterruption(BaseModel):
    """Salvage screen suspended by combat, restored after it."""
    kind: Literal["salvage"] = "salvage"
    loot: LootBatch | None = None
    state: dict | None = None  # Opaque salvage-screen state


class BlockadeExtractionInterruption(BaseModel):
    """A blockade was beaten; extraction resumes without another roll."""
    kind: Literal["blockade_extraction"] = "blockade_extraction"
    hostile_id: str | None = None


class BlueprintModalInterruption(BaseModel):
    """A drone blueprint waiting for the accept step."""
    kind: Literal["blueprint_modal"] = "blueprint_modal"
    blueprint: BlueprintLoot
    reward_type: str | None = None


Interruption = Annotated[
    Union[
        PoiCombatInterruption,
        SalvageInterruption,
        BlockadeExtractionInterruption,
        BlueprintModalInterruption,
    ],
    Field(discriminator="kind"),
]


# -----------------------------------------------------------------------------
# Run
# -----------------------------------------------------------------------------

class RunRecord(BaseModel):
    """
    The single live run.

    Owned by the lifecycle coordinator; the outcome resolver and escape
    resolver mutate it through explicit calls only.
    """
    id: str = Field(default_factory=generate_id)
    ship_slot_id: int
    map_tier: int = 1
    map_seed: int = 0
    detection_level: float = Field(default=0.0, ge=0.0, le=100.0)

    hull: int = 0
    max_hull: int = 0
    sections: dict[SectionKey, ShipSection] = Field(default_factory=dict)

    collected_loot: list[LootItem] = Field(default_factory=list)
    credits_earned: int = 0
    ai_cores_earned: int = 0
    combats_won: int = 0
    combats_lost: int = 0

    looted_poi_coords: set[tuple[int, int]] = Field(default_factory=set)
    fled_poi_coords: set[tuple[int, int]] = Field(default_factory=set)
    combat_reputation_earned: list[CombatReputationEntry] = Field(default_factory=list)

    # At most one interruption per kind
    interruptions: list[Interruption] = Field(default_factory=list)
    blockade_cleared: bool = False      # Guards against a second blockade roll
    is_blockade_combat: bool = False    # Mirrors the active encounter

    is_boss_run: bool = False
    boss_id: str | None = None
    started_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_starter_deck(self) -> bool:
        return self.ship_slot_id == 0

    # --- interruptions ---

    def get_interruption(self, kind: str):
        for item in self.interruptions:
            if item.kind == kind:
                return item
        return None

    def set_interruption(self, interruption) -> None:
        """Record an interruption, replacing any previous one of the same kind."""
        self.clear_interruption(interruption.kind)
        self.interruptions.append(interruption)

    def clear_interruption(self, kind: str) -> bool:
        before = len(self.interruptions)
        self.interruptions = [i for i in self.interruptions if i.kind != kind]
        return len(self.interruptions) != before

    @property
    def pending_poi_combat(self) -> PoiCombatInterruption | None:
        return self.get_interruption("poi_combat")

    @property
    def pending_salvage_loot(self) -> LootBatch | None:
        salvage = self.get_interruption("salvage")
        return salvage.loot if salvage else None

    @property
    def pending_salvage_state(self) -> dict | None:
        salvage = self.get_interruption("salvage")
        return salvage.state if salvage else None

    @property
    def pending_blockade_extraction(self) -> bool:
        return self.get_interruption("blockade_extraction") is not None

    @property
    def pending_blueprint(self) -> BlueprintLoot | None:
        modal = self.get_interruption("blueprint_modal")
        return modal.blueprint if modal else None

    # --- hull ---

    def recompute_hull(self) -> None:
        self.hull = total_hull(self.sections)
        self.max_hull = total_max_hull(self.sections)

    def apply_section_hull(self, hull_by_section: dict[SectionKey, int]) -> None:
        """Merge post-combat hull values; sections not reported keep theirs."""
        for key, hull in hull_by_section.items():
            section = self.sections.get(key)
            if section is not None:
                self.sections[key] = section.with_hull(hull)
        self.recompute_hull()

    @property
    def hull_percent(self) -> float:
        if self.max_hull <= 0:
            return 0.0
        return self.hull / self.max_hull * 100

    @property
    def damaged_section_count(self) -> int:
        return damaged_count(self.sections)

    @property
    def combat_reputation_total(self) -> int:
        return sum(e.rep_earned for e in self.combat_reputation_earned)

    # --- PoIs ---

    def record_looted(self, q: int, r: int) -> bool:
        """Mark a PoI as looted. Returns False if it already was."""
        if (q, r) in self.looted_poi_coords:
            return False
        self.looted_poi_coords.add((q, r))
        return True

    def record_fled(self, q: int, r: int) -> bool:
        if (q, r) in self.fled_poi_coords:
            return False
        self.fled_poi_coords.add((q, r))
        return True


class CombatContext(BaseModel):
    """
    The battle currently being fought or wound down.

    The encounter may be cleared by other code before the outcome is
    processed; the run carries the flags needed to resolve without it.
    """
    encounter: Encounter | None = None
    stage: OutcomeStage = OutcomeStage.AWAITING_OUTCOME
    outcome: OutcomeType | None = None
    pending_loot: LootBatch | None = None
    pending_boss_reward: StagedBossReward | None = None


# -----------------------------------------------------------------------------
# Profile
# -----------------------------------------------------------------------------

class BossProgress(BaseModel):
    defeated_boss_ids: set[str] = Field(default_factory=set)
    total_victories: int = 0
    total_attempts: int = 0


class SectionLoadout(BaseModel):
    """Component fitted to a ship slot lane; damage carries between runs."""
    component_id: str
    name: str = ""
    max_hull: int = 8
    damaged_threshold: int = 4
    critical_threshold: int = 0
    lane: Lane = Lane.MIDDLE
    damage_dealt: int = 0


class DroneSlot(BaseModel):
    name: str
    is_damaged: bool = False


class DeckEntry(BaseModel):
    card_id: str
    quantity: int = 1


class ShipSlot(BaseModel):
    id: int
    name: str = ""
    status: SlotStatus = SlotStatus.ACTIVE
    sections: dict[SectionKey, SectionLoadout] = Field(default_factory=dict)
    drones: list[DroneSlot] = Field(default_factory=list)
    decklist: list[DeckEntry] = Field(default_factory=list)
    loadout_value: int = 0  # Replication value of the fitted deck

    @property
    def is_starter(self) -> bool:
        return self.id == 0


class ProfileStats(BaseModel):
    runs_completed: int = 0
    runs_lost: int = 0
    total_credits_earned: int = 0
    total_combats_won: int = 0
    highest_tier_completed: int = 0


class Profile(BaseModel):
    """Player state that outlives any single run."""
    id: str = Field(default_factory=generate_id)
    name: str = "Commander"
    credits: int = 0
    ai_cores: int = 0
    reputation: int = 0
    inventory: dict[str, int] = Field(default_factory=dict)  # card_id -> count
    tokens: dict[str, int] = Field(default_factory=dict)
    unlocked_blueprints: list[str] = Field(default_factory=list)
    tactical_items: dict[str, int] = Field(default_factory=dict)
    ship_slots: list[ShipSlot] = Field(default_factory=list)
    boss_progress: BossProgress = Field(default_factory=BossProgress)
    stats: ProfileStats = Field(default_factory=ProfileStats)

    def get_slot(self, slot_id: int) -> ShipSlot | None:
        for slot in self.ship_slots:
            if slot.id == slot_id:
                return slot
        return None

    def consume_tactical_item(self, item_id: str) -> bool:
        """Use one tactical item. Returns False if none are held."""
        count = self.tactical_items.get(item_id, 0)
        if count <= 0:
            return False
        self.tactical_items[item_id] = count - 1
        return True


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------

class RunSummary(BaseModel):
    """Recap of the most recent run, shown on the hub."""
    run_id: str
    success: bool
    ship_slot_id: int
    map_tier: int
    cards_acquired: int = 0
    blueprints_acquired: int = 0
    credits_earned: int = 0
    ai_cores_earned: int = 0
    combats_won: int = 0
    combats_lost: int = 0
    reputation_earned: int = 0
    final_hull: int = 0
    max_hull: int = 0
    failure_reason: FailureReason | None = None
    ended_at: datetime = Field(default_factory=datetime.now)


class FailedRunNotice(BaseModel):
    reason: FailureReason
    is_starter_deck: bool = False


class GameSession(BaseModel):
    """
    Complete engine state.

    This is the root model that gets serialized to JSON.

    Note: _terminating is transient and never persisted. It is set as the
    first action of abandoning a run and blocks combat initiation until
    the failed-run transition completes.
    """
    schema_version: str = "1.0.0"
    id: str = Field(default_factory=generate_id)
    saved_at: datetime = Field(default_factory=datetime.now)

    profile: Profile = Field(default_factory=Profile)
    run: RunRecord | None = None
    combat: CombatContext | None = None
    last_run_summary: RunSummary | None = None
    failed_run: FailedRunNotice | None = None

    _terminating: bool = PrivateAttr(default=False)

    @property
    def terminating(self) -> bool:
        return self._terminating

    def set_terminating(self, value: bool) -> None:
        self._terminating = value

    def save_checkpoint(self) -> None:
        """Update timestamp before save."""
        self.saved_at = datetime.now()


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------

class StartRunResult(BaseModel):
    success: bool = True
    error: str | None = None
    run_id: str | None = None


class CombatStartResult(BaseModel):
    success: bool = True
    error: str | None = None
    encounter: Encounter | None = None


class ExtractionCheck(BaseModel):
    """Outcome of the extraction gate."""
    success: bool = True
    error: str | None = None
    blocked: bool = False
    hostile_id: str | None = None
    clearance_used: bool = False
    roll: float | None = None  # None when no draw was made
    already_cleared: bool = False


class OutcomeDescriptor(BaseModel):
    """Caller-facing description of a resolved battle."""
    success: bool = True
    error: str | None = None
    outcome: OutcomeType | None = None
    loot: LootBatch | None = None
    boss_reward: BossReward | None = None
    is_boss_reward: bool = False
    is_first_boss_victory: bool = False
    pending_blueprint: BlueprintLoot | None = None
    blueprint_exhausted: bool = False
    reputation: CombatReputationEntry | None = None
    hull: int = 0
    max_hull: int = 0
    is_starter_deck: bool = False
    failure_reason: FailureReason | None = None
    transition: TransitionTarget | None = None
    message: str = ""


class TransitionResult(BaseModel):
    success: bool = True
    error: str | None = None
    transition: TransitionTarget | None = None
    items_added: int = 0
    credits_added: int = 0
    ai_cores_added: int = 0
    message: str = ""


class ExtractionSummary(BaseModel):
    cards_acquired: int = 0
    blueprints_acquired: int = 0
    credits_earned: int = 0
    ai_cores_earned: int = 0
    drones_damaged: list[str] = Field(default_factory=list)
    final_hull: int = 0
    max_hull: int = 0
    hull_percent: float = 0.0
    items_discarded: int = 0


class ExtractionResult(BaseModel):
    success: bool = True
    error: str | None = None
    action: ExtractionAction | None = None
    limit: int = 0
    collected_loot: list[LootItem] = Field(default_factory=list)
    summary: ExtractionSummary | None = None


class EscapeHit(BaseModel):
    section: SectionKey
    new_hull: int
    max_hull: int


class EscapeReport(BaseModel):
    success: bool = True
    error: str | None = None
    seed: int = 0
    total_damage: int = 0
    hits: list[EscapeHit] = Field(default_factory=list)
    sections: dict[SectionKey, ShipSection] = Field(default_factory=dict)
    sections_before: dict[SectionKey, ShipSection] = Field(default_factory=dict)
    destroyed: bool = False


class AbandonResult(BaseModel):
    success: bool = True
    error: str | None = None
    was_mid_combat: bool = False
    is_starter_deck: bool = False


class ResumeResult(BaseModel):
    """An interruption handed back to the map once its combat is over."""
    success: bool = True
    error: str | None = None
    poi: PoiCombatInterruption | None = None
    salvage: SalvageInterruption | None = None


class RecoveryResult(BaseModel):
    success: bool = True
    error: str | None = None
    cost: int = 0
    cards_removed: list[DeckEntry] = Field(default_factory=list)
