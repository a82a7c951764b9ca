"""
Escape damage.

Fleeing an encounter costs hull: a total is rolled from the hostile's
damage range, then dealt one point at a time to randomly chosen sections.
"""

import logging

from ..state.catalog import DamageRange, HostileProfile
from ..state.config import EngineConfig, engine_config
from ..state.schema import EscapeHit, EscapeReport, RunRecord, SectionKey, ShipSection
from ..tools.rng import SeededRng

logger = logging.getLogger(__name__)


def would_destroy(sections: dict[SectionKey, ShipSection]) -> bool:
    """True when every section is at or below its damaged threshold."""
    return bool(sections) and all(s.is_damaged for s in sections.values())


class EscapeResolver:
    """Applies seeded escape damage to a run's sections."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = engine_config(config)

    def damage_range(self, hostile: HostileProfile | None) -> DamageRange:
        if hostile is not None and hostile.escape_damage is not None:
            return hostile.escape_damage
        return DamageRange(
            min=self.config["escape_damage_min"],
            max=self.config["escape_damage_max"],
        )

    def resolve_escape(
        self,
        run: RunRecord,
        hostile: HostileProfile | None = None,
        seed: int | None = None,
    ) -> EscapeReport:
        """
        Roll and distribute escape damage.

        The run is not modified; call apply() to persist the result.

        Args:
            run: The run whose sections take the damage
            hostile: Hostile escaped from; None uses the default range
            seed: RNG seed, wall-clock time when omitted

        Returns:
            EscapeReport with new sections, per-hit log, and destroyed flag
        """
        rng = SeededRng(seed)
        damage = self.damage_range(hostile)

        before = {key: s.model_copy() for key, s in run.sections.items()}
        sections = {key: s.model_copy() for key, s in run.sections.items()}
        keys = list(sections)
        if not keys:
            return EscapeReport(success=False, error="Run has no ship sections", seed=rng.seed)

        total = rng.random_int_inclusive(damage.min, damage.max)
        hits = []
        for _ in range(total):
            key = keys[rng.random_int(0, len(keys))]
            section = sections[key].with_hull(sections[key].hull - 1)
            sections[key] = section
            hits.append(EscapeHit(section=key, new_hull=section.hull, max_hull=section.max_hull))
            logger.debug("Escape hit on %s: %d/%d", key.value, section.hull, section.max_hull)

        destroyed = would_destroy(sections)
        logger.info(
            "Escape dealt %d damage (range %d-%d)%s",
            total, damage.min, damage.max, ", ship destroyed" if destroyed else "",
        )
        return EscapeReport(
            seed=rng.seed,
            total_damage=total,
            hits=hits,
            sections=sections,
            sections_before=before,
            destroyed=destroyed,
        )

    def apply(self, run: RunRecord, report: EscapeReport) -> None:
        """Persist escape sections and aggregate hull into the run."""
        run.sections = dict(report.sections)
        run.recompute_hull()

    def could_destroy(self, run: RunRecord, hostile: HostileProfile | None = None) -> bool:
        """
        Pessimistic warning check.

        Assumes the maximum damage lands on each section in turn; true
        when every section would end at or below its damaged threshold.
        """
        if not run.sections:
            return False
        worst = self.damage_range(hostile).max
        return all(
            max(0, s.hull - worst) <= s.thresholds.damaged
            for s in run.sections.values()
        )
