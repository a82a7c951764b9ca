"""Tests for combat outcome resolution (regular and blockade combats)."""

import pytest

from eremos.simulation.sandbox import battle_lost, battle_won
from eremos.state.schema import (
    BlockadeEncounter,
    BlueprintLoot,
    CardLoot,
    FailureReason,
    LootBatch,
    LootSource,
    OutcomeStage,
    OutcomeType,
    PoiCombatInterruption,
    RegularEncounter,
    SalvageInterruption,
    SalvageItem,
    SectionKey,
    SlotStatus,
    TransitionTarget,
    Waypoint,
)
from eremos.state.event_bus import EventType


@pytest.fixture
def poi_loot():
    return LootBatch(items=[
        CardLoot(card_id="SHIELD_BOOST", name="Shield Boost", source=LootSource.POI),
        SalvageItem(item_id="RELAY_PARTS", name="Relay Parts", credit_value=75, source=LootSource.POI),
    ])


def raider():
    return RegularEncounter(ai_id="Raider Wing", tier=1, difficulty="normal")


class TestVictoryResolve:
    """Test the resolve step of a regular victory."""

    def test_stages_loot_without_banking(self, coordinator, custom_run, loot):
        coordinator.start_combat(raider())

        outcome = coordinator.resolve_combat(battle_won(custom_run, {SectionKey.BRIDGE: 3}))

        assert outcome.success
        assert outcome.outcome == OutcomeType.VICTORY
        assert outcome.loot == loot.salvage
        assert custom_run.collected_loot == []
        assert custom_run.credits_earned == 0
        assert coordinator.session.combat.stage == OutcomeStage.PENDING_LOOT_REVEAL
        assert coordinator.session.combat.pending_loot == loot.salvage

    def test_merges_section_hull(self, coordinator, custom_run):
        coordinator.start_combat(raider())

        outcome = coordinator.resolve_combat(battle_won(custom_run, {SectionKey.BRIDGE: 3}))

        assert custom_run.sections[SectionKey.BRIDGE].hull == 7
        assert custom_run.hull == 23
        assert outcome.hull == 23
        assert custom_run.combats_won == 1

    def test_salvage_requested_with_hostile_deck(self, coordinator, custom_run, loot):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))

        deck, tier, difficulty = loot.salvage_calls[0]
        assert deck == ["LASER_BLAST", "RAIDER_DRONE", "OVERCHARGE"]
        assert tier == 1
        assert difficulty == "normal"

    def test_combat_reputation_appended(self, coordinator, custom_run):
        coordinator.start_combat(raider())
        outcome = coordinator.resolve_combat(battle_won(custom_run))

        assert outcome.reputation.rep_earned == 1500
        assert not outcome.reputation.was_capped
        assert len(custom_run.combat_reputation_earned) == 1

        coordinator.finalize_loot()
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))

        assert [e.rep_earned for e in custom_run.combat_reputation_earned] == [1500, 1500]

    def test_resets_signal_lock(self, coordinator, custom_run, threat):
        before = threat.resets
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))
        assert threat.resets == before + 1

    def test_records_combat_win(self, coordinator, custom_run, missions):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))
        assert missions.of_type("COMBAT_WIN") == [
            {"hostile_id": "Raider Wing", "tier": 1, "is_blockade": False}
        ]

    def test_emits_combat_resolved(self, coordinator, custom_run, bus):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))
        events = bus.get_history(EventType.COMBAT_RESOLVED)
        assert events[-1].data["outcome"] == "victory"

    def test_resolve_twice_refused(self, coordinator, custom_run):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))

        again = coordinator.resolve_combat(battle_won(custom_run))

        assert not again.success
        assert "pending_loot_reveal" in again.error

    def test_resolve_without_combat(self, coordinator, custom_run):
        outcome = coordinator.resolve_combat(battle_won(custom_run))
        assert not outcome.success
        assert outcome.error == "No combat in progress"


class TestPoiSalvageMerge:
    """Test merging of loot from a PoI interrupted by combat."""

    def test_merge_when_not_from_salvage(self, coordinator, custom_run, loot, poi_loot):
        """PoI loot precedes combat loot and the pending salvage loot is cleared."""
        coordinator.start_combat(
            raider(),
            poi=PoiCombatInterruption(q=1, r=2, from_salvage=False),
            salvage=SalvageInterruption(loot=poi_loot),
        )

        outcome = coordinator.resolve_combat(battle_won(custom_run))

        assert len(outcome.loot) == len(poi_loot) + len(loot.salvage)
        assert outcome.loot.items[:2] == poi_loot.items
        assert outcome.loot.items[2:] == loot.salvage.items
        assert outcome.loot.credit_value == 125
        assert custom_run.pending_salvage_loot is None

    def test_no_merge_when_from_salvage(self, coordinator, custom_run, loot, poi_loot):
        """Combat loot is the battle's own reward; salvage waits for its own screen."""
        coordinator.start_combat(
            raider(),
            poi=PoiCombatInterruption(q=1, r=2, from_salvage=True),
            salvage=SalvageInterruption(loot=poi_loot, state={"revealed": 1}),
        )

        outcome = coordinator.resolve_combat(battle_won(custom_run))

        assert outcome.loot == loot.salvage
        assert custom_run.pending_salvage_loot == poi_loot
        assert custom_run.pending_salvage_state == {"revealed": 1}

    def test_merge_keeps_salvage_state(self, coordinator, custom_run, poi_loot):
        coordinator.start_combat(
            raider(),
            poi=PoiCombatInterruption(q=1, r=2),
            salvage=SalvageInterruption(loot=poi_loot, state={"revealed": 2}),
        )

        coordinator.resolve_combat(battle_won(custom_run))

        assert custom_run.pending_salvage_loot is None
        assert custom_run.pending_salvage_state == {"revealed": 2}

    def test_stale_salvage_cleared_on_new_combat(self, coordinator, custom_run, poi_loot):
        """Salvage left over from an earlier combat never leaks into the next."""
        coordinator.start_combat(
            raider(),
            poi=PoiCombatInterruption(q=1, r=2, from_salvage=True),
            salvage=SalvageInterruption(loot=poi_loot),
        )
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.finalize_loot()

        coordinator.start_combat(raider())

        assert custom_run.pending_salvage_loot is None
        assert custom_run.pending_poi_combat is None


class TestFinalizeLoot:
    """Test banking staged loot and choosing the next screen."""

    def test_plain_victory_resumes_run(self, coordinator, custom_run, loot):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))

        result = coordinator.finalize_loot()

        assert result.transition == TransitionTarget.RESUME_RUN
        assert result.items_added == 2
        assert result.credits_added == 50
        assert custom_run.collected_loot == loot.salvage.items
        assert all(i.source == LootSource.COMBAT_SALVAGE for i in custom_run.collected_loot)
        assert custom_run.credits_earned == 50
        assert coordinator.session.combat is None

    def test_merged_poi_items_keep_poi_tag(self, coordinator, custom_run, poi_loot):
        coordinator.start_combat(raider(), salvage=SalvageInterruption(loot=poi_loot))
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.finalize_loot()

        sources = [i.source for i in custom_run.collected_loot]
        assert sources == [
            LootSource.POI, LootSource.POI,
            LootSource.COMBAT_SALVAGE, LootSource.COMBAT_SALVAGE,
        ]
        assert custom_run.credits_earned == 125

    def test_pending_poi_combat_preserved(self, coordinator, custom_run):
        """The PoI interruption survives finalize, waypoints included."""
        poi = PoiCombatInterruption(
            q=4, r=-2, poi_name="Derelict Relay", pack_type="salvage_pack",
            remaining_waypoints=[Waypoint(q=5, r=-2), Waypoint(q=6, r=-3)],
        )
        coordinator.start_combat(raider(), poi=poi)
        coordinator.resolve_combat(battle_won(custom_run))

        coordinator.finalize_loot()

        assert custom_run.pending_poi_combat == poi

    def test_finalize_without_staged_loot(self, coordinator, custom_run):
        result = coordinator.finalize_loot()
        assert not result.success
        assert result.error == "No combat in progress"

    def test_finalize_twice_refused(self, coordinator, custom_run):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.finalize_loot()

        assert not coordinator.finalize_loot().success
        assert len(custom_run.collected_loot) == 2


class TestBlueprintReward:
    """Test blueprint PoI victories."""

    def blueprint_poi(self):
        return RegularEncounter(
            ai_id="Scout Picket", tier=1, difficulty="easy", reward_type="DRONE_BLUEPRINT_LIGHT",
        )

    def test_blueprint_staged_separately(self, coordinator, custom_run, loot):
        coordinator.start_combat(self.blueprint_poi())

        outcome = coordinator.resolve_combat(battle_won(custom_run))

        assert outcome.pending_blueprint == loot.blueprint
        assert custom_run.pending_blueprint == loot.blueprint
        assert loot.blueprint not in outcome.loot.items
        assert loot.blueprint_calls == [("light", 1, [])]

    def test_blueprint_victory_keeps_signal_lock(self, coordinator, custom_run, threat):
        before = threat.resets
        coordinator.start_combat(self.blueprint_poi())
        coordinator.resolve_combat(battle_won(custom_run))
        assert threat.resets == before

    def test_finalize_then_accept(self, coordinator, custom_run, loot):
        coordinator.start_combat(self.blueprint_poi())
        coordinator.resolve_combat(battle_won(custom_run))

        result = coordinator.finalize_loot()

        assert result.transition == TransitionTarget.POST_COMBAT
        assert coordinator.session.combat.stage == OutcomeStage.PENDING_BLUEPRINT
        assert len(custom_run.collected_loot) == 2

        accepted = coordinator.accept_blueprint()

        assert accepted.transition == TransitionTarget.RESUME_RUN
        last = custom_run.collected_loot[-1]
        assert isinstance(last, BlueprintLoot)
        assert last.source == LootSource.BLUEPRINT_POI
        assert custom_run.pending_blueprint is None
        assert coordinator.session.combat is None

    def test_accept_refused_before_loot_reveal(self, coordinator, custom_run, loot):
        """Accepting early leaves the staged salvage for finalize."""
        coordinator.start_combat(self.blueprint_poi())
        coordinator.resolve_combat(battle_won(custom_run))

        result = coordinator.accept_blueprint()

        assert not result.success
        assert result.error == "Combat is pending_loot_reveal, expected pending_blueprint"
        assert custom_run.pending_blueprint == loot.blueprint
        assert coordinator.session.combat.pending_loot == loot.salvage

        finalized = coordinator.finalize_loot()

        assert finalized.transition == TransitionTarget.POST_COMBAT
        assert custom_run.collected_loot == loot.salvage.items
        assert coordinator.accept_blueprint().success

    def test_accept_without_blueprint(self, coordinator, custom_run):
        result = coordinator.accept_blueprint()
        assert not result.success
        assert result.error == "No pending blueprint"

    def test_exhausted_category_pays_bonus(self, coordinator, custom_run, loot):
        loot.exhausted = True
        coordinator.start_combat(self.blueprint_poi())

        outcome = coordinator.resolve_combat(battle_won(custom_run))

        assert outcome.blueprint_exhausted
        assert outcome.pending_blueprint is None
        assert outcome.loot.credit_value == 100
        assert "already unlocked" in outcome.message
        assert coordinator.finalize_loot().transition == TransitionTarget.RESUME_RUN

    def test_unlocked_ids_passed(self, coordinator, custom_run, loot, session):
        session.profile.unlocked_blueprints = ["WISP"]
        coordinator.start_combat(self.blueprint_poi())
        coordinator.resolve_combat(battle_won(custom_run))
        assert loot.blueprint_calls[0][2] == ["WISP"]


class TestBlockadeVictory:
    """Test blockade victories and the double-roll guard."""

    def test_blockade_flag_mirrored_at_start(self, coordinator, custom_run):
        coordinator.start_combat(BlockadeEncounter(ai_id="Raider Wing"))
        assert custom_run.is_blockade_combat

    def test_finalize_triggers_auto_extract(self, coordinator, custom_run):
        coordinator.start_combat(BlockadeEncounter(ai_id="Raider Wing"))
        coordinator.resolve_combat(battle_won(custom_run))

        result = coordinator.finalize_loot()

        assert result.transition == TransitionTarget.AUTO_EXTRACT
        assert custom_run.pending_blockade_extraction
        assert custom_run.blockade_cleared
        assert coordinator.session.combat is None

    def test_cleared_descriptor_falls_back_to_run_flag(self, coordinator, custom_run):
        """The blockade is still recognized after the encounter descriptor is cleared."""
        coordinator.start_combat(BlockadeEncounter(ai_id="Raider Wing"))
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.session.combat.encounter = None

        result = coordinator.finalize_loot()

        assert result.transition == TransitionTarget.AUTO_EXTRACT
        assert custom_run.blockade_cleared

    def test_regular_victory_sets_no_blockade_flags(self, coordinator, custom_run):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.finalize_loot()

        assert not custom_run.pending_blockade_extraction
        assert not custom_run.blockade_cleared

    def test_second_extraction_skips_roll(self, coordinator, custom_run, threat):
        """After a blockade is cleared, a later attempt never re-rolls."""
        coordinator.start_combat(BlockadeEncounter(ai_id="Raider Wing"))
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.finalize_loot()
        coordinator.add_detection(100, "alarm")

        check = coordinator.begin_extraction()

        assert not check.blocked
        assert check.already_cleared
        assert check.roll is None

    def test_resume_blockade_extraction(self, coordinator, custom_run, session):
        coordinator.start_combat(BlockadeEncounter(ai_id="Raider Wing"))
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.finalize_loot()

        result = coordinator.resume_blockade_extraction()

        assert result.success
        assert result.summary.credits_earned == 50
        assert coordinator.run is None
        assert session.profile.credits == 1050


class TestDefeat:
    """Test defeat handling."""

    def test_custom_slot_goes_mia(self, coordinator, custom_run, session, loot):
        coordinator.start_combat(raider())

        outcome = coordinator.resolve_combat(battle_lost())

        assert outcome.outcome == OutcomeType.DEFEAT
        assert outcome.hull == 0
        assert outcome.failure_reason == FailureReason.COMBAT
        assert outcome.transition == TransitionTarget.FAILED_RUN
        assert not outcome.is_starter_deck
        assert "MIA" in outcome.message
        assert coordinator.run is None
        assert coordinator.session.combat is None
        assert session.profile.get_slot(1).status == SlotStatus.MIA
        assert session.profile.stats.runs_lost == 1
        assert session.last_run_summary.combats_lost == 1
        assert loot.salvage_calls == []

    def test_starter_slot_never_mia(self, coordinator, starter_run, session):
        coordinator.start_combat(raider())

        outcome = coordinator.resolve_combat(battle_lost())

        assert outcome.is_starter_deck
        assert session.profile.get_slot(0).status == SlotStatus.ACTIVE
        assert session.failed_run.is_starter_deck

    def test_collected_loot_forfeited(self, coordinator, custom_run, session):
        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_won(custom_run))
        coordinator.finalize_loot()
        credits_before = session.profile.credits

        coordinator.start_combat(raider())
        coordinator.resolve_combat(battle_lost())

        assert session.profile.credits == credits_before
        assert session.profile.inventory["LASER_BLAST"] == 4
        assert session.last_run_summary.credits_earned == 0
