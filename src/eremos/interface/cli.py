"""
Command-line demo for eremos.

Plays one scripted run against the sandbox collaborators: a PoI combat,
a detection spike, an extraction attempt (fighting any blockade), and
the extraction itself, rendering every descriptor along the way.
"""

import argparse
import logging
from pathlib import Path

from ..simulation.sandbox import (
    LevelledReputationService,
    RecordingMissionTracker,
    TableLootGenerator,
    ThreatMeter,
    battle_won,
    demo_profile,
)
from ..state.schema import (
    BlockadeEncounter,
    ExtractionAction,
    PoiCombatInterruption,
    RegularEncounter,
    SectionKey,
    TransitionTarget,
)
from ..state.store import JsonSessionStore
from ..systems.lifecycle import RunLifecycleCoordinator
from ..tools.rng import SeededRng
from . import renderer
from .config import load_config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eremos",
        description="Play a scripted extraction run against in-memory collaborators.",
    )
    parser.add_argument("--seed", type=int, default=None, help="RNG seed for the whole run")
    parser.add_argument("--slot", type=int, default=1, help="Ship slot to fly (0 = starter)")
    parser.add_argument("--tier", type=int, default=1, help="Map tier")
    parser.add_argument("--saves", type=Path, default=Path("saves"), help="Saves directory")
    parser.add_argument("--detection", type=float, default=40.0, help="Detection gained on the map")
    parser.add_argument(
        "--flee", action="store_true", help="Flee a Raider Wing patrol before extracting",
    )
    return parser


def play_demo(
    coordinator: RunLifecycleCoordinator,
    slot: int,
    tier: int,
    detection: float,
    flee: bool = False,
    show_hits: bool = True,
) -> int:
    """Run the scripted demo. Returns a process exit code."""
    coordinator.new_session(demo_profile())
    started = coordinator.start_run(slot, map_tier=tier)
    if not started.success:
        renderer.console.print(f"[red]{started.error}[/red]")
        return 1
    renderer.render_run_status(coordinator.run)

    # A guarded point of interest
    combat = coordinator.start_combat(
        RegularEncounter(ai_id="Scout Picket", tier=tier, difficulty="easy"),
        poi=PoiCombatInterruption(q=2, r=-1, poi_name="Derelict Relay"),
    )
    if not combat.success:
        renderer.console.print(f"[red]{combat.error}[/red]")
        return 1
    battle = battle_won(coordinator.run, {SectionKey.BRIDGE: 2})
    renderer.render_outcome(coordinator.resolve_combat(battle))
    renderer.render_transition(coordinator.finalize_loot())
    resumed = coordinator.resume_poi()
    if resumed.success:
        coordinator.record_poi_looted(resumed.poi.q, resumed.poi.r)

    if flee:
        coordinator.start_combat(RegularEncounter(ai_id="Raider Wing", tier=tier))
        report = coordinator.attempt_escape(seed=coordinator.rng.random_int(1, 2**31 - 1))
        renderer.render_escape(report, show_hits)
        coordinator.record_poi_fled(3, -1)
        if report.destroyed:
            renderer.console.print(f"[red]Run lost: {coordinator.session.failed_run.reason.value}[/red]")
            return 0

    coordinator.add_detection(detection, "hostile scan")
    renderer.render_run_status(coordinator.run)

    check = coordinator.begin_extraction()
    renderer.render_extraction_check(check)
    if check.blocked:
        coordinator.start_combat(BlockadeEncounter(ai_id=check.hostile_id, tier=tier))
        renderer.render_outcome(coordinator.resolve_combat(battle_won(coordinator.run)))
        result = coordinator.finalize_loot()
        renderer.render_transition(result)
        if result.transition == TransitionTarget.AUTO_EXTRACT:
            extraction = coordinator.resume_blockade_extraction()
        else:
            extraction = coordinator.complete_extraction()
    else:
        extraction = coordinator.complete_extraction()

    if extraction.action == ExtractionAction.SELECT_LOOT:
        renderer.render_extraction(extraction)
        extraction = coordinator.complete_extraction(extraction.collected_loot[: extraction.limit])
    renderer.render_extraction(extraction)
    return 0 if extraction.success else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.saves)

    logging.basicConfig(
        level=getattr(logging, config.get("log_level", "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    seed = args.seed if args.seed is not None else config.get("default_seed")
    rng = SeededRng(seed)
    logger.info("Demo seed %d", rng.seed)

    coordinator = RunLifecycleCoordinator(
        JsonSessionStore(args.saves),
        loot=TableLootGenerator(SeededRng(rng.seed + 1)),
        threat=ThreatMeter(),
        reputation=LevelledReputationService(level=3),
        missions=RecordingMissionTracker(),
        config=config.get("engine") or None,
        rng=rng,
    )
    return play_demo(
        coordinator,
        args.slot,
        args.tier,
        args.detection,
        flee=args.flee,
        show_hits=config.get("show_hit_log", True),
    )
