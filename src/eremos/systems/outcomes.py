"""
Combat outcome resolution.

Turns a finished battle into loot, reputation, and profile changes.
Every step that waits on the player (loot reveal, blueprint accept, boss
reward) stages its data on the session and returns; a later finalize
call picks it up, so nothing is held in locals between the two calls.

    AWAITING_OUTCOME -> PENDING_LOOT_REVEAL -> (PENDING_BLUEPRINT) -> cleared
                     -> PENDING_BOSS_REWARD -> cleared
                     -> DEFEATED (run terminated)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..state.catalog import is_blueprint_reward
from ..state.event_bus import EventType
from ..state.schema import (
    AiCores,
    BattleResult,
    BlockadeExtractionInterruption,
    BlueprintExhausted,
    BlueprintModalInterruption,
    BossEncounter,
    CombatContext,
    CombatReputationEntry,
    FailureReason,
    LootBatch,
    LootSource,
    OutcomeDescriptor,
    OutcomeStage,
    OutcomeType,
    RegularEncounter,
    RunRecord,
    SalvageItem,
    StagedBossReward,
    TransitionResult,
    TransitionTarget,
)
from .collaborators import MissionEvent

if TYPE_CHECKING:
    from .lifecycle import RunLifecycleCoordinator

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for run engine errors."""
    pass


class StaleStateError(EngineError):
    """A finalize step was called for a stage the combat is not in."""
    pass


class CombatOutcomeResolver:
    """
    Central combat state machine.

    Operates on the coordinator's current session and delegates run
    termination back to it.
    """

    def __init__(self, coordinator: RunLifecycleCoordinator):
        self.coordinator = coordinator

    @property
    def session(self):
        return self.coordinator.session

    def _require_stage(self, combat: CombatContext | None, stage: OutcomeStage) -> CombatContext:
        if combat is None:
            raise StaleStateError("No combat in progress")
        if combat.stage != stage:
            raise StaleStateError(
                f"Combat is {combat.stage.value}, expected {stage.value}"
            )
        return combat

    # -------------------------------------------------------------------------
    # Resolve
    # -------------------------------------------------------------------------

    def resolve(self, battle: BattleResult) -> OutcomeDescriptor:
        """
        Process a finished battle.

        Victory stages loot (or a boss reward) for a later finalize call;
        defeat terminates the run immediately.
        """
        session = self.session
        if session is None:
            return OutcomeDescriptor(success=False, error="No active session")
        try:
            combat = self._require_stage(session.combat, OutcomeStage.AWAITING_OUTCOME)
        except StaleStateError as e:
            return OutcomeDescriptor(success=False, error=str(e))

        run = session.run
        if run is None:
            return OutcomeDescriptor(success=False, error="No active run")

        encounter = combat.encounter
        is_boss = isinstance(encounter, BossEncounter) or run.is_boss_run

        if not battle.player_won:
            return self._defeat(run, combat, is_boss)
        if is_boss:
            return self._boss_victory(run, combat, battle)
        return self._victory(run, combat, battle)

    def _victory(
        self, run: RunRecord, combat: CombatContext, battle: BattleResult
    ) -> OutcomeDescriptor:
        coordinator = self.coordinator
        profile = self.session.profile
        encounter = combat.encounter

        run.apply_section_hull(battle.section_hull)
        run.combats_won += 1

        ai_id = encounter.ai_id if encounter is not None else ""
        tier = encounter.tier if encounter is not None else run.map_tier
        difficulty = encounter.difficulty if encounter is not None else "normal"
        reward_type = encounter.reward_type if isinstance(encounter, RegularEncounter) else None
        hostile = coordinator.catalog.hostile(ai_id)

        reputation = None
        if ai_id:
            slot = profile.get_slot(run.ship_slot_id)
            earned = coordinator.reputation.compute_combat_reputation(
                slot.loadout_value if slot else 0,
                ai_id,
                coordinator.catalog.reputation_cap(run.map_tier),
            )
            reputation = CombatReputationEntry(
                hostile_id=ai_id,
                rep_earned=earned.rep_earned,
                was_capped=earned.was_capped,
            )
            run.combat_reputation_earned.append(reputation)

        deck = (encounter.hostile_deck if encounter is not None else []) or (
            hostile.deck if hostile else []
        )
        salvage = coordinator.loot.generate_salvage(deck, tier, difficulty)

        poi_combat = run.pending_poi_combat
        pending_salvage = run.pending_salvage_loot
        if pending_salvage is not None and not (poi_combat and poi_combat.from_salvage):
            salvage = pending_salvage.merged(salvage)
            self._clear_salvage_loot(run)

        message = "Enemy defeated. Salvage recovered."
        exhausted = False
        pending_blueprint = None
        blueprint_poi = is_blueprint_reward(reward_type)
        category = coordinator.catalog.blueprint_category(reward_type)
        if category is not None:
            result = coordinator.loot.generate_blueprint(
                category.category_id, tier, list(profile.unlocked_blueprints)
            )
            if isinstance(result, BlueprintExhausted):
                salvage = salvage.with_bonus_credits(category.bonus_credits)
                exhausted = True
                message = (
                    f"All {category.category_id} blueprints already unlocked. "
                    f"Bonus salvage worth {category.bonus_credits} credits recovered instead."
                )
            else:
                pending_blueprint = result
                run.set_interruption(BlueprintModalInterruption(
                    blueprint=result, reward_type=reward_type,
                ))
                message = "Enemy defeated. A drone blueprint was recovered."
        elif blueprint_poi:
            logger.warning("Unknown blueprint reward type %s, no blueprint granted", reward_type)

        combat.pending_loot = salvage
        combat.outcome = OutcomeType.VICTORY
        combat.stage = OutcomeStage.PENDING_LOOT_REVEAL

        # Blueprint PoIs were engaged by choice; pursuit continues
        if not blueprint_poi:
            coordinator.threat.reset_tracking()

        coordinator.record_mission(MissionEvent.COMBAT_WIN, {
            "hostile_id": ai_id,
            "tier": tier,
            "is_blockade": bool(encounter is not None and encounter.is_blockade),
        })
        coordinator.bus.emit(
            EventType.COMBAT_RESOLVED,
            run_id=run.id,
            outcome=OutcomeType.VICTORY.value,
            loot_count=len(salvage),
        )
        logger.info("Victory over %s: %d loot items staged", ai_id or "unknown hostile", len(salvage))
        coordinator.save()

        return OutcomeDescriptor(
            outcome=OutcomeType.VICTORY,
            loot=salvage,
            pending_blueprint=pending_blueprint,
            blueprint_exhausted=exhausted,
            reputation=reputation,
            hull=run.hull,
            max_hull=run.max_hull,
            is_starter_deck=run.is_starter_deck,
            message=message,
        )

    def _clear_salvage_loot(self, run: RunRecord) -> None:
        salvage = run.get_interruption("salvage")
        if salvage is None:
            return
        if salvage.state is None:
            run.clear_interruption("salvage")
        else:
            run.set_interruption(salvage.model_copy(update={"loot": None}))

    def _boss_victory(
        self, run: RunRecord, combat: CombatContext, battle: BattleResult
    ) -> OutcomeDescriptor:
        coordinator = self.coordinator
        encounter = combat.encounter
        boss_id = encounter.boss_id if isinstance(encounter, BossEncounter) else run.boss_id
        config = coordinator.catalog.boss(boss_id)
        if config is None:
            return OutcomeDescriptor(success=False, error=f"Unknown boss: {boss_id}")

        progress = self.session.profile.boss_progress
        first = boss_id not in progress.defeated_boss_ids
        reward = config.first_time_reward if first else config.repeat_reward

        run.apply_section_hull(battle.section_hull)
        run.combats_won += 1

        combat.pending_boss_reward = StagedBossReward(
            boss_id=boss_id, reward=reward, is_first_victory=first,
        )
        combat.outcome = OutcomeType.VICTORY
        combat.stage = OutcomeStage.PENDING_BOSS_REWARD

        coordinator.record_mission(MissionEvent.COMBAT_WIN, {
            "hostile_id": config.ai_id,
            "boss_id": boss_id,
        })
        coordinator.bus.emit(
            EventType.COMBAT_RESOLVED,
            run_id=run.id,
            outcome=OutcomeType.VICTORY.value,
            boss_id=boss_id,
        )
        logger.info("Boss %s defeated (first victory: %s)", boss_id, first)
        coordinator.save()

        return OutcomeDescriptor(
            outcome=OutcomeType.VICTORY,
            boss_reward=reward,
            is_boss_reward=True,
            is_first_boss_victory=first,
            hull=run.hull,
            max_hull=run.max_hull,
            is_starter_deck=run.is_starter_deck,
            message=f"{config.name} defeated.",
        )

    def _defeat(self, run: RunRecord, combat: CombatContext, is_boss: bool) -> OutcomeDescriptor:
        run.combats_lost += 1
        run.hull = 0
        reason = FailureReason.BOSS if is_boss else FailureReason.COMBAT
        is_starter = run.is_starter_deck

        combat.outcome = OutcomeType.DEFEAT
        combat.stage = OutcomeStage.DEFEATED
        self.coordinator.bus.emit(
            EventType.COMBAT_RESOLVED,
            run_id=run.id,
            outcome=OutcomeType.DEFEAT.value,
        )
        max_hull = run.max_hull
        self.coordinator.end_run(success=False, reason=reason)

        if is_starter:
            message = "Ship destroyed. Mission failed."
        else:
            message = "Ship destroyed. Mission failed. Ship slot marked as MIA."
        return OutcomeDescriptor(
            outcome=OutcomeType.DEFEAT,
            hull=0,
            max_hull=max_hull,
            is_starter_deck=is_starter,
            failure_reason=reason,
            transition=TransitionTarget.FAILED_RUN,
            message=message,
        )

    # -------------------------------------------------------------------------
    # Finalize
    # -------------------------------------------------------------------------

    def finalize_loot(self) -> TransitionResult:
        """
        Bank the staged salvage once the reveal is acknowledged.

        Decides where the player goes next: auto-extraction after a
        blockade, the blueprint step, or back to the map. Any PoI combat
        interruption is left in place for the PoI's own loot.
        """
        session = self.session
        if session is None:
            return TransitionResult(success=False, error="No active session")
        try:
            combat = self._require_stage(session.combat, OutcomeStage.PENDING_LOOT_REVEAL)
        except StaleStateError as e:
            return TransitionResult(success=False, error=str(e))
        run = session.run
        if run is None:
            return TransitionResult(success=False, error="No active run")

        batch = combat.pending_loot or LootBatch()
        credits = 0
        ai_cores = 0
        for item in batch.items:
            run.collected_loot.append(item.tagged(LootSource.COMBAT_SALVAGE))
            if isinstance(item, SalvageItem):
                credits += item.credit_value
            elif isinstance(item, AiCores):
                ai_cores += item.amount
        run.credits_earned += credits
        run.ai_cores_earned += ai_cores
        combat.pending_loot = None

        encounter = combat.encounter
        is_blockade = bool(encounter is not None and encounter.is_blockade) or run.is_blockade_combat
        has_blueprint = run.pending_blueprint is not None

        if is_blockade:
            run.set_interruption(BlockadeExtractionInterruption(
                hostile_id=getattr(encounter, "ai_id", None),
            ))
            run.blockade_cleared = True
            transition = TransitionTarget.AUTO_EXTRACT
            message = "Blockade cleared. Extraction resuming."
        elif has_blueprint:
            transition = TransitionTarget.POST_COMBAT
            message = "Blueprint awaiting acceptance."
        else:
            transition = TransitionTarget.RESUME_RUN
            message = "Returning to the map."

        if has_blueprint:
            combat.stage = OutcomeStage.PENDING_BLUEPRINT
        else:
            self.coordinator.clear_combat_context()

        self.coordinator.bus.emit(
            EventType.LOOT_FINALIZED,
            run_id=run.id,
            items=len(batch),
            transition=transition.value,
        )
        logger.info("Loot finalized: %d items, next %s", len(batch), transition.value)
        self.coordinator.save()

        return TransitionResult(
            transition=transition,
            items_added=len(batch),
            credits_added=credits,
            ai_cores_added=ai_cores,
            message=message,
        )

    def accept_blueprint(self) -> TransitionResult:
        """Bank the pending drone blueprint and leave the post-combat context."""
        session = self.session
        run = session.run if session else None
        if run is None:
            return TransitionResult(success=False, error="No active run")
        modal = run.get_interruption("blueprint_modal")
        if modal is None:
            return TransitionResult(success=False, error="No pending blueprint")
        try:
            self._require_stage(session.combat, OutcomeStage.PENDING_BLUEPRINT)
        except StaleStateError as e:
            return TransitionResult(success=False, error=str(e))

        run.collected_loot.append(modal.blueprint.tagged(LootSource.BLUEPRINT_POI))
        run.clear_interruption("blueprint_modal")
        self.coordinator.clear_combat_context()

        if run.pending_blockade_extraction:
            transition = TransitionTarget.AUTO_EXTRACT
        else:
            transition = TransitionTarget.RESUME_RUN

        self.coordinator.bus.emit(
            EventType.BLUEPRINT_ACCEPTED,
            run_id=run.id,
            blueprint_id=modal.blueprint.blueprint_id,
        )
        logger.info("Blueprint %s accepted", modal.blueprint.blueprint_id)
        self.coordinator.save()

        return TransitionResult(
            transition=transition,
            items_added=1,
            message=f"Blueprint {modal.blueprint.blueprint_id} added to cargo.",
        )

    def finalize_boss_reward(self) -> TransitionResult:
        """Apply a staged boss reward straight to the profile and return to the hub."""
        session = self.session
        if session is None:
            return TransitionResult(success=False, error="No active session")
        try:
            combat = self._require_stage(session.combat, OutcomeStage.PENDING_BOSS_REWARD)
        except StaleStateError as e:
            return TransitionResult(success=False, error=str(e))

        staged = combat.pending_boss_reward
        reward = staged.reward
        profile = session.profile
        profile.credits += reward.credits
        profile.ai_cores += reward.ai_cores
        profile.reputation += reward.reputation

        progress = profile.boss_progress
        if staged.is_first_victory:
            progress.defeated_boss_ids.add(staged.boss_id)
        progress.total_victories += 1

        self.coordinator.record_mission(MissionEvent.BOSS_DEFEATED, {
            "boss_id": staged.boss_id,
            "first_victory": staged.is_first_victory,
        })
        if reward.credits > 0:
            self.coordinator.record_mission(
                MissionEvent.CREDITS_EARNED, {"amount": reward.credits}
            )

        self.coordinator.discard_boss_run()
        self.coordinator.bus.emit(
            EventType.BOSS_REWARDED,
            boss_id=staged.boss_id,
            credits=reward.credits,
            ai_cores=reward.ai_cores,
            reputation=reward.reputation,
        )
        logger.info("Boss reward for %s applied", staged.boss_id)
        self.coordinator.save()

        return TransitionResult(
            transition=TransitionTarget.HUB,
            credits_added=reward.credits,
            ai_cores_added=reward.ai_cores,
            message="Returning to the hangar.",
        )
