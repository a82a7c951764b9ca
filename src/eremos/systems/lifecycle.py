"""
Run lifecycle management.

The coordinator owns the active run end to end: creation from a ship
slot, mutation through the gate, escape, and outcome systems, and
termination by extraction (success) or defeat/abandonment (MIA).

Storage is delegated to a SessionStore implementation:
- JsonSessionStore for production (file-based)
- MemorySessionStore for testing (in-memory)
"""

import logging
import math
from pathlib import Path

from ..state.catalog import Catalog, default_catalog
from ..state.config import EngineConfig, engine_config
from ..state.event_bus import EventBus, EventType
from ..state.schema import (
    AbandonResult,
    BattleResult,
    BlueprintLoot,
    BossEncounter,
    CardLoot,
    CombatContext,
    CombatStartResult,
    EscapeReport,
    ExtractionAction,
    ExtractionCheck,
    ExtractionResult,
    ExtractionSummary,
    FailedRunNotice,
    FailureReason,
    GameSession,
    Lane,
    LootBatch,
    LootSource,
    OutcomeDescriptor,
    OutcomeStage,
    PoiCombatInterruption,
    Profile,
    RecoveryResult,
    ResumeResult,
    RunRecord,
    RunSummary,
    SalvageInterruption,
    SectionKey,
    SectionThresholds,
    ShipSection,
    ShipSlot,
    SlotStatus,
    StartRunResult,
    TokenLoot,
    TransitionResult,
    extracted_ai_cores,
    extracted_credits,
)
from ..state.store import JsonSessionStore, SessionStore
from ..tools.rng import SeededRng
from .collaborators import (
    LootGenerator,
    MissionEvent,
    MissionRecorder,
    ReputationService,
    ThreatTracker,
)

logger = logging.getLogger(__name__)

DEFAULT_SECTION_LANES = {
    SectionKey.BRIDGE: Lane.LEFT,
    SectionKey.POWER_CELL: Lane.MIDDLE,
    SectionKey.DRONE_CONTROL_HUB: Lane.RIGHT,
}


class RunLifecycleCoordinator:
    """
    Owns the active run and the session it lives in.

    Collaborators are passed in; nothing is looked up globally.
    Systems are created lazily:
    - gate: DetectionGate
    - limits: ExtractionLimitCalculator
    - escape: EscapeResolver
    - outcomes: CombatOutcomeResolver
    """

    def __init__(
        self,
        store: SessionStore | Path | str = "saves",
        *,
        loot: LootGenerator,
        threat: ThreatTracker,
        reputation: ReputationService,
        missions: MissionRecorder | None = None,
        catalog: Catalog | None = None,
        bus: EventBus | None = None,
        config: EngineConfig | None = None,
        rng: SeededRng | None = None,
        autosave: bool = True,
    ):
        """
        Initialize with a store and collaborators.

        Args:
            store: SessionStore instance, or path for JsonSessionStore
            loot: Loot content generator
            threat: Detection/threat tracker for the current map
            reputation: Reputation service (extraction bonus, combat rep)
            missions: Optional mission/telemetry recorder
            catalog: Game data; defaults to the shipped catalog
            bus: Event bus to publish on; a private one is created if omitted
            config: Engine constant overrides
            rng: Seeded source for blockade rolls and drone damage
            autosave: Save the session after every state change
        """
        if isinstance(store, (Path, str)):
            self.store = JsonSessionStore(store)
        else:
            self.store = store

        self.loot = loot
        self.threat = threat
        self.reputation = reputation
        self.missions = missions
        self.catalog = catalog or default_catalog()
        self.bus = bus or EventBus()
        self.config = engine_config(config)
        self.rng = rng or SeededRng()
        self.autosave = autosave

        self.session: GameSession | None = None

        self._gate = None
        self._limits = None
        self._escape = None
        self._outcomes = None

    @property
    def gate(self):
        """Get the detection gate (lazy initialization)."""
        if self._gate is None:
            from .detection import DetectionGate
            self._gate = DetectionGate(
                self.catalog,
                rng=self.rng,
                fallback_hostile=self.config["blockade_fallback_hostile"],
            )
        return self._gate

    @property
    def limits(self):
        """Get the extraction limit calculator (lazy initialization)."""
        if self._limits is None:
            from .extraction import ExtractionLimitCalculator
            self._limits = ExtractionLimitCalculator(self.reputation, self.config)
        return self._limits

    @property
    def escape(self):
        """Get the escape resolver (lazy initialization)."""
        if self._escape is None:
            from .escape import EscapeResolver
            self._escape = EscapeResolver(self.config)
        return self._escape

    @property
    def outcomes(self):
        """Get the combat outcome resolver (lazy initialization)."""
        if self._outcomes is None:
            from .outcomes import CombatOutcomeResolver
            self._outcomes = CombatOutcomeResolver(self)
        return self._outcomes

    @property
    def run(self) -> RunRecord | None:
        return self.session.run if self.session else None

    @property
    def profile(self) -> Profile | None:
        return self.session.profile if self.session else None

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def new_session(self, profile: Profile | None = None) -> GameSession:
        self.session = GameSession(profile=profile or Profile())
        self.save()
        return self.session

    def load_session(self, session_id: str) -> GameSession | None:
        session = self.store.load(session_id)
        if session is None:
            logger.warning("Session %s not found", session_id)
            return None
        self.session = session
        logger.info("Loaded session %s", session.id)
        return session

    def save(self) -> None:
        if self.autosave and self.session is not None:
            self.store.save(self.session)

    def record_mission(self, event: MissionEvent, payload: dict) -> None:
        """Forward an event to the mission recorder without depending on it."""
        if self.missions is None:
            return
        try:
            self.missions.record_event(event.value, payload)
        except Exception:
            logger.exception("Mission recorder failed on %s", event.value)

    def clear_combat_context(self) -> None:
        """Drop the active combat; the blockade mirror goes with it."""
        if self.session is None:
            return
        self.session.combat = None
        if self.session.run is not None:
            self.session.run.is_blockade_combat = False

    # -------------------------------------------------------------------------
    # Run creation
    # -------------------------------------------------------------------------

    def build_sections(self, slot: ShipSlot) -> dict[SectionKey, ShipSection]:
        """
        Ship sections for a run from the slot's fitted components.

        Damage carries over between runs except on the starter slot,
        which always launches at full hull.
        """
        if not slot.sections:
            hull = self.config["default_section_hull"]
            return {
                key: ShipSection(
                    key=key,
                    name=key.value.replace("_", " ").title(),
                    hull=hull,
                    max_hull=hull,
                    thresholds=SectionThresholds(
                        damaged=self.config["default_damaged_threshold"]
                    ),
                    lane=lane,
                )
                for key, lane in DEFAULT_SECTION_LANES.items()
            }

        sections = {}
        for key, loadout in slot.sections.items():
            damage = 0 if slot.is_starter else loadout.damage_dealt
            sections[key] = ShipSection(
                key=key,
                name=loadout.name or loadout.component_id,
                hull=max(0, loadout.max_hull - damage),
                max_hull=loadout.max_hull,
                thresholds=SectionThresholds(
                    damaged=loadout.damaged_threshold,
                    critical=loadout.critical_threshold,
                ),
                lane=loadout.lane,
            )
        return sections

    def start_run(
        self, ship_slot_id: int, map_tier: int = 1, map_seed: int | None = None
    ) -> StartRunResult:
        """Launch a new run with the given ship slot."""
        session = self.session
        if session is None:
            return StartRunResult(success=False, error="No active session")
        if session.run is not None:
            return StartRunResult(success=False, error="A run is already in progress")
        slot = session.profile.get_slot(ship_slot_id)
        if slot is None:
            return StartRunResult(success=False, error=f"Ship slot {ship_slot_id} not found")
        if slot.status != SlotStatus.ACTIVE:
            return StartRunResult(
                success=False,
                error=f"Ship slot {ship_slot_id} is {slot.status.value}",
            )
        if self.catalog.tier(map_tier) is None:
            return StartRunResult(success=False, error=f"Unknown map tier: {map_tier}")

        session.set_terminating(False)
        session.failed_run = None
        session.combat = None

        # Fresh map, fresh detection
        self.threat.adjust_level(-self.threat.get_current_level(), "run start")
        self.threat.reset_tracking()

        run = RunRecord(
            ship_slot_id=ship_slot_id,
            map_tier=map_tier,
            map_seed=map_seed if map_seed is not None else self.rng.random_int(1, 2**31 - 1),
            sections=self.build_sections(slot),
        )
        run.recompute_hull()
        session.run = run

        self.bus.emit(EventType.RUN_STARTED, run_id=run.id, ship_slot_id=ship_slot_id, tier=map_tier)
        logger.info("Run %s started: slot %d, tier %d", run.id, ship_slot_id, map_tier)
        self.save()
        return StartRunResult(run_id=run.id)

    # -------------------------------------------------------------------------
    # Map activity
    # -------------------------------------------------------------------------

    def add_detection(self, delta: float, reason: str) -> float:
        """Raise (or lower) detection and mirror the tracker's level into the run."""
        run = self.run
        if run is None:
            logger.warning("Detection change ignored, no active run")
            return 0.0
        self.threat.adjust_level(delta, reason)
        run.detection_level = max(0.0, min(100.0, float(self.threat.get_current_level())))
        self.bus.emit(
            EventType.DETECTION_CHANGED, run_id=run.id, level=run.detection_level, reason=reason,
        )
        self.save()
        return run.detection_level

    def record_poi_looted(self, q: int, r: int) -> bool:
        run = self.run
        if run is None:
            return False
        added = run.record_looted(q, r)
        if added:
            self.save()
        return added

    def record_poi_fled(self, q: int, r: int) -> bool:
        run = self.run
        if run is None:
            return False
        added = run.record_fled(q, r)
        if added:
            self.save()
        return added

    def collect_loot(self, batch: LootBatch, source: LootSource = LootSource.POI) -> int:
        """Add map loot to the cargo hold. Returns the number of items added."""
        run = self.run
        if run is None:
            return 0
        for item in batch.items:
            run.collected_loot.append(item.tagged(source))
        self.record_mission(MissionEvent.POI_LOOTED, {"items": len(batch), "source": source.value})
        self.save()
        return len(batch)

    def resume_poi(self) -> ResumeResult:
        """
        Hand back the point of interest a finished combat interrupted.

        The interruption is cleared; the caller picks up its remaining
        waypoints and pack.
        """
        run = self.run
        if run is None:
            return ResumeResult(success=False, error="No active run")
        error = self._unfinished_combat()
        if error:
            return ResumeResult(success=False, error=error)
        poi = run.pending_poi_combat
        if poi is None:
            return ResumeResult(success=False, error="No point of interest to resume")

        run.clear_interruption("poi_combat")
        logger.info("Resuming point of interest at (%d, %d)", poi.q, poi.r)
        self.save()
        return ResumeResult(poi=poi)

    def restore_salvage(self) -> ResumeResult:
        """Hand back the salvage screen suspended by a finished combat."""
        run = self.run
        if run is None:
            return ResumeResult(success=False, error="No active run")
        error = self._unfinished_combat()
        if error:
            return ResumeResult(success=False, error=error)
        salvage = run.get_interruption("salvage")
        if salvage is None:
            return ResumeResult(success=False, error="No salvage to restore")

        run.clear_interruption("salvage")
        self.save()
        return ResumeResult(salvage=salvage)

    # -------------------------------------------------------------------------
    # Combat initiation
    # -------------------------------------------------------------------------

    def start_combat(
        self,
        encounter,
        poi: PoiCombatInterruption | None = None,
        salvage: SalvageInterruption | None = None,
    ) -> CombatStartResult:
        """
        Begin a map or blockade combat.

        Args:
            encounter: RegularEncounter or BlockadeEncounter
            poi: The PoI the combat broke out at, if any
            salvage: Salvage screen suspended by the combat, if any
        """
        session = self.session
        if session is None:
            return CombatStartResult(success=False, error="No active session")
        if session.terminating:
            logger.warning("Combat refused: run is being abandoned")
            return CombatStartResult(success=False, error="Run is being abandoned")
        run = session.run
        if run is None:
            return CombatStartResult(success=False, error="No active run")
        if isinstance(encounter, BossEncounter):
            return CombatStartResult(success=False, error="Boss combat cannot start during a run")
        if self.catalog.hostile(encounter.ai_id) is None:
            return CombatStartResult(success=False, error=f"Unknown hostile: {encounter.ai_id}")

        # Nothing from a previous combat carries into this one
        run.clear_interruption("poi_combat")
        run.clear_interruption("blueprint_modal")
        run.clear_interruption("blockade_extraction")
        run.clear_interruption("salvage")
        if poi is not None:
            run.set_interruption(poi)
        if salvage is not None:
            run.set_interruption(salvage)

        run.is_blockade_combat = encounter.is_blockade
        session.combat = CombatContext(encounter=encounter)

        self.bus.emit(
            EventType.COMBAT_STARTED,
            run_id=run.id,
            hostile_id=encounter.ai_id,
            is_blockade=encounter.is_blockade,
        )
        logger.info("Combat started against %s (blockade: %s)", encounter.ai_id, encounter.is_blockade)
        self.save()
        return CombatStartResult(encounter=encounter)

    def start_boss_combat(self, boss_id: str, ship_slot_id: int) -> CombatStartResult:
        """Launch a boss fight from the hub. Counts as an attempt immediately."""
        session = self.session
        if session is None:
            return CombatStartResult(success=False, error="No active session")
        if session.terminating:
            return CombatStartResult(success=False, error="Run is being abandoned")
        if session.run is not None:
            return CombatStartResult(success=False, error="A run is already in progress")
        config = self.catalog.boss(boss_id)
        if config is None:
            return CombatStartResult(success=False, error=f"Unknown boss: {boss_id}")
        slot = session.profile.get_slot(ship_slot_id)
        if slot is None or slot.status != SlotStatus.ACTIVE:
            return CombatStartResult(
                success=False, error=f"Ship slot {ship_slot_id} is not available"
            )

        session.profile.boss_progress.total_attempts += 1

        hostile = self.catalog.hostile(config.ai_id)
        run = RunRecord(
            ship_slot_id=ship_slot_id,
            map_tier=config.tier,
            sections=self.build_sections(slot),
            is_boss_run=True,
            boss_id=boss_id,
        )
        run.recompute_hull()
        session.run = run

        encounter = BossEncounter(
            boss_id=boss_id,
            ai_id=config.ai_id,
            tier=config.tier,
            difficulty=hostile.difficulty if hostile else "boss",
            hostile_deck=list(hostile.deck) if hostile else [],
        )
        session.combat = CombatContext(encounter=encounter)

        self.bus.emit(EventType.COMBAT_STARTED, run_id=run.id, boss_id=boss_id)
        logger.info("Boss combat started: %s with slot %d", boss_id, ship_slot_id)
        self.save()
        return CombatStartResult(encounter=encounter)

    # -------------------------------------------------------------------------
    # Combat outcome (delegates to CombatOutcomeResolver)
    # -------------------------------------------------------------------------

    def resolve_combat(self, battle: BattleResult) -> OutcomeDescriptor:
        return self.outcomes.resolve(battle)

    def finalize_loot(self) -> TransitionResult:
        return self.outcomes.finalize_loot()

    def accept_blueprint(self) -> TransitionResult:
        return self.outcomes.accept_blueprint()

    def finalize_boss_reward(self) -> TransitionResult:
        return self.outcomes.finalize_boss_reward()

    # -------------------------------------------------------------------------
    # Escape
    # -------------------------------------------------------------------------

    def attempt_escape(self, hostile_id: str | None = None, seed: int | None = None) -> EscapeReport:
        """
        Flee an encounter, taking escape damage.

        A ship reduced to all-damaged sections is lost and the run fails.
        """
        run = self.run
        if run is None:
            return EscapeReport(success=False, error="No active run")
        combat = self.session.combat
        if combat is not None and combat.stage != OutcomeStage.AWAITING_OUTCOME:
            return EscapeReport(
                success=False, error=f"Cannot flee: combat is {combat.stage.value}"
            )
        if hostile_id is None and combat is not None:
            hostile_id = getattr(combat.encounter, "ai_id", None)

        report = self.escape.resolve_escape(run, self.catalog.hostile(hostile_id), seed)
        if not report.success:
            return report
        self.escape.apply(run, report)
        self.clear_combat_context()
        self.bus.emit(
            EventType.ESCAPE_RESOLVED,
            run_id=run.id,
            total_damage=report.total_damage,
            destroyed=report.destroyed,
        )

        if report.destroyed:
            self.end_run(success=False, reason=FailureReason.COMBAT)
        else:
            self.save()
        return report

    def could_destroy(self, hostile_id: str | None = None) -> bool:
        run = self.run
        if run is None:
            return False
        return self.escape.could_destroy(run, self.catalog.hostile(hostile_id))

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    def extraction_limit(self) -> int:
        run = self.run
        return self.limits.limit(run) if run else 0

    def _unfinished_combat(self) -> str | None:
        """Error text while a combat still holds staged rewards, else None."""
        combat = self.session.combat
        if combat is not None:
            return f"Combat is {combat.stage.value}; finish it first"
        if self.run.pending_blueprint is not None:
            return "A blueprint is waiting to be accepted"
        return None

    def begin_extraction(self, use_clearance: bool = False) -> ExtractionCheck:
        """
        Roll for a blockade at the extraction point.

        Skipped entirely once a blockade has been cleared on this run.
        A clearance item, when requested and held, bypasses the roll.
        """
        session = self.session
        run = self.run
        if run is None:
            return ExtractionCheck(success=False, error="No active run")
        if session.terminating:
            return ExtractionCheck(success=False, error="Run is being abandoned")
        error = self._unfinished_combat()
        if error:
            return ExtractionCheck(success=False, error=error)
        if run.blockade_cleared:
            logger.info("Blockade already cleared, skipping roll")
            return ExtractionCheck(blocked=False, already_cleared=True)

        def consume_clearance() -> bool:
            return session.profile.consume_tactical_item(self.config["clearance_item_id"])

        run.detection_level = max(0.0, min(100.0, float(self.threat.get_current_level())))
        check = self.gate.attempt_extraction(
            run.detection_level,
            run.map_tier,
            consume_clearance if use_clearance else None,
        )

        if check.blocked:
            self.bus.emit(EventType.EXTRACTION_BLOCKED, run_id=run.id, hostile_id=check.hostile_id)
        self.save()
        return check

    def resume_blockade_extraction(self, selected_loot: list | None = None) -> ExtractionResult:
        """Continue the extraction a beaten blockade interrupted, without a new roll."""
        run = self.run
        if run is None:
            return ExtractionResult(success=False, error="No active run")
        if not run.pending_blockade_extraction:
            return ExtractionResult(success=False, error="No blockade extraction pending")
        error = self._unfinished_combat()
        if error:
            return ExtractionResult(success=False, error=error)
        run.clear_interruption("blockade_extraction")
        return self.complete_extraction(selected_loot)

    def complete_extraction(self, selected_loot: list | None = None) -> ExtractionResult:
        """
        Leave the map with the cargo hold.

        When more loot is held than the extraction limit allows and no
        selection is given, returns a select_loot action instead.
        """
        run = self.run
        if run is None:
            return ExtractionResult(success=False, error="No active run")
        error = self._unfinished_combat()
        if error:
            return ExtractionResult(success=False, error=error)

        limit = self.limits.limit(run)
        collected = list(run.collected_loot)

        if selected_loot is None:
            if len(collected) > limit:
                logger.info("Extraction needs loot selection: %d items, limit %d", len(collected), limit)
                return ExtractionResult(
                    action=ExtractionAction.SELECT_LOOT,
                    limit=limit,
                    collected_loot=collected,
                )
            kept = collected
        else:
            if len(selected_loot) > limit:
                return ExtractionResult(
                    success=False,
                    error=f"Selected {len(selected_loot)} items but limit is {limit}",
                    limit=limit,
                )
            remaining = list(collected)
            for item in selected_loot:
                if item not in remaining:
                    return ExtractionResult(
                        success=False, error="Selected loot is not in the cargo hold", limit=limit,
                    )
                remaining.remove(item)
            kept = list(selected_loot)

        run.collected_loot = kept
        drones_damaged = self._apply_drone_damage(run)
        credits = extracted_credits(kept)
        summary = ExtractionSummary(
            cards_acquired=sum(1 for i in kept if isinstance(i, CardLoot)),
            blueprints_acquired=sum(1 for i in kept if isinstance(i, BlueprintLoot)),
            credits_earned=credits,
            ai_cores_earned=extracted_ai_cores(kept),
            drones_damaged=drones_damaged,
            final_hull=run.hull,
            max_hull=run.max_hull,
            hull_percent=round(run.hull_percent, 1),
            items_discarded=len(collected) - len(kept),
        )

        run_id = run.id
        self.end_run(success=True)

        self.record_mission(MissionEvent.EXTRACTION_COMPLETE, {
            "run_id": run_id,
            "items": len(kept),
        })
        if credits > 0:
            self.record_mission(MissionEvent.CREDITS_EARNED, {"amount": credits})
        self.bus.emit(EventType.EXTRACTION_COMPLETED, run_id=run_id, credits=credits)

        return ExtractionResult(
            action=ExtractionAction.EXTRACTED,
            limit=limit,
            collected_loot=kept,
            summary=summary,
        )

    def _apply_drone_damage(self, run: RunRecord) -> list[str]:
        """
        Damage drones when returning below the hull ratio.

        One drone per damaged section, chosen among undamaged drones.
        """
        if run.is_starter_deck or run.max_hull <= 0:
            return []
        if run.hull / run.max_hull >= self.config["drone_damage_hull_ratio"]:
            return []
        slot = self.session.profile.get_slot(run.ship_slot_id)
        if slot is None:
            return []

        damaged = []
        for _ in range(run.damaged_section_count):
            drone = self.rng.select([d for d in slot.drones if not d.is_damaged])
            if drone is None:
                break
            drone.is_damaged = True
            damaged.append(drone.name)
        if damaged:
            logger.info("Drones damaged on return: %s", ", ".join(damaged))
        return damaged

    # -------------------------------------------------------------------------
    # Termination
    # -------------------------------------------------------------------------

    def end_run(
        self, success: bool, reason: FailureReason | None = None
    ) -> RunSummary | None:
        """
        Terminate the active run and settle the profile.

        Success banks the cargo hold; failure forfeits it and marks the
        ship slot MIA. Combat reputation is awarded either way.
        """
        session = self.session
        run = session.run if session else None
        if run is None:
            logger.warning("No active run to end")
            return None

        profile = session.profile
        slot = profile.get_slot(run.ship_slot_id)
        reputation = run.combat_reputation_total
        credits = 0
        ai_cores = 0
        cards = 0
        blueprints = 0

        if success:
            credits = extracted_credits(run.collected_loot)
            ai_cores = extracted_ai_cores(run.collected_loot)
            for item in run.collected_loot:
                if isinstance(item, CardLoot):
                    profile.inventory[item.card_id] = profile.inventory.get(item.card_id, 0) + 1
                    cards += 1
                elif isinstance(item, BlueprintLoot):
                    if item.blueprint_id not in profile.unlocked_blueprints:
                        profile.unlocked_blueprints.append(item.blueprint_id)
                    blueprints += 1
                elif isinstance(item, TokenLoot):
                    profile.tokens[item.token_type] = profile.tokens.get(item.token_type, 0) + item.amount

            profile.credits += credits
            profile.ai_cores += ai_cores
            profile.stats.runs_completed += 1
            profile.stats.total_credits_earned += credits
            profile.stats.total_combats_won += run.combats_won
            profile.stats.highest_tier_completed = max(
                profile.stats.highest_tier_completed, run.map_tier
            )
            if slot is not None and not slot.is_starter:
                for key, section in run.sections.items():
                    if key in slot.sections:
                        slot.sections[key].damage_dealt = section.max_hull - section.hull
        else:
            reason = reason or FailureReason.COMBAT
            if slot is not None and not slot.is_starter:
                slot.status = SlotStatus.MIA
            profile.stats.runs_lost += 1
            session.failed_run = FailedRunNotice(reason=reason, is_starter_deck=run.is_starter_deck)

        profile.reputation += reputation

        summary = RunSummary(
            run_id=run.id,
            success=success,
            ship_slot_id=run.ship_slot_id,
            map_tier=run.map_tier,
            cards_acquired=cards,
            blueprints_acquired=blueprints,
            credits_earned=credits,
            ai_cores_earned=ai_cores,
            combats_won=run.combats_won,
            combats_lost=run.combats_lost,
            reputation_earned=reputation,
            final_hull=run.hull,
            max_hull=run.max_hull,
            failure_reason=None if success else reason,
        )
        session.last_run_summary = summary
        session.run = None
        session.combat = None

        self.bus.emit(
            EventType.RUN_ENDED,
            run_id=run.id,
            success=success,
            reason=reason.value if reason else None,
        )
        logger.info(
            "Run %s ended: %s", run.id, "extracted" if success else f"MIA ({reason.value})"
        )
        self.save()
        return summary

    def discard_boss_run(self) -> None:
        """Close a won boss fight; boss rewards go to the profile, not a cargo hold."""
        session = self.session
        if session is None:
            return
        run = session.run
        if run is not None and run.is_boss_run:
            slot = session.profile.get_slot(run.ship_slot_id)
            if slot is not None and not slot.is_starter:
                for key, section in run.sections.items():
                    if key in slot.sections:
                        slot.sections[key].damage_dealt = section.max_hull - section.hull
            session.run = None
        session.combat = None

    def abandon_run(self) -> AbandonResult:
        """
        Give up the active run, from the map or mid-combat.

        The terminating flag is set first and stays set until the failed
        run is acknowledged, so racing callers cannot abandon twice or
        start a new combat in between.
        """
        session = self.session
        if session is None:
            return AbandonResult(success=False, error="No active session")
        if session.terminating:
            logger.warning("Abandon ignored: already terminating")
            return AbandonResult(success=False, error="Run is already being abandoned")

        session.set_terminating(True)
        run = session.run
        if run is None:
            session.set_terminating(False)
            return AbandonResult(success=False, error="No active run")

        is_starter = run.is_starter_deck
        was_mid_combat = session.combat is not None
        if was_mid_combat:
            self.clear_combat_context()

        self.end_run(success=False, reason=FailureReason.ABANDON)
        self.bus.emit(EventType.RUN_ABANDONED, run_id=run.id, mid_combat=was_mid_combat)
        return AbandonResult(was_mid_combat=was_mid_combat, is_starter_deck=is_starter)

    def acknowledge_failed_run(self) -> FailedRunNotice | None:
        """Finish the failed-run transition and release the terminating guard."""
        session = self.session
        if session is None:
            return None
        notice = session.failed_run
        session.failed_run = None
        session.set_terminating(False)
        self.save()
        return notice

    # -------------------------------------------------------------------------
    # MIA recovery
    # -------------------------------------------------------------------------

    def recovery_cost(self, slot: ShipSlot) -> int:
        return max(
            self.config["mia_recovery_floor"],
            math.floor(slot.loadout_value * self.config["mia_recovery_multiplier"]),
        )

    def recover_slot(self, slot_id: int) -> RecoveryResult:
        """Pay to bring an MIA ship slot back into service."""
        profile = self.profile
        if profile is None:
            return RecoveryResult(success=False, error="No active session")
        slot = profile.get_slot(slot_id)
        if slot is None:
            return RecoveryResult(success=False, error="Ship slot not found")
        if slot.status != SlotStatus.MIA:
            return RecoveryResult(success=False, error="Ship is not MIA")

        cost = self.recovery_cost(slot)
        if profile.credits < cost:
            return RecoveryResult(
                success=False,
                error=f"Insufficient credits: need {cost}, have {profile.credits}",
                cost=cost,
            )

        profile.credits -= cost
        slot.status = SlotStatus.ACTIVE
        for drone in slot.drones:
            drone.is_damaged = False

        self.bus.emit(EventType.SLOT_RECOVERED, slot_id=slot_id, cost=cost)
        logger.info("Ship slot %d recovered for %d credits", slot_id, cost)
        self.save()
        return RecoveryResult(cost=cost)

    def scrap_slot(self, slot_id: int) -> RecoveryResult:
        """Write off an MIA ship slot, removing its deck from the inventory."""
        profile = self.profile
        if profile is None:
            return RecoveryResult(success=False, error="No active session")
        slot = profile.get_slot(slot_id)
        if slot is None:
            return RecoveryResult(success=False, error="Ship slot not found")
        if slot.status != SlotStatus.MIA:
            return RecoveryResult(success=False, error="Ship is not MIA")
        if slot.is_starter:
            return RecoveryResult(success=False, error="Cannot scrap starter deck")

        removed = []
        for entry in slot.decklist:
            held = profile.inventory.get(entry.card_id, 0)
            if held <= 0:
                continue
            quantity = min(entry.quantity, held)
            if held - quantity > 0:
                profile.inventory[entry.card_id] = held - quantity
            else:
                del profile.inventory[entry.card_id]
            removed.append(entry.model_copy(update={"quantity": quantity}))

        slot.status = SlotStatus.EMPTY
        slot.decklist = []
        slot.drones = []
        slot.sections = {}
        slot.loadout_value = 0

        self.bus.emit(EventType.SLOT_SCRAPPED, slot_id=slot_id, cards_removed=len(removed))
        logger.info("Ship slot %d scrapped", slot_id)
        self.save()
        return RecoveryResult(cards_removed=removed)
