"""
Extraction gate.

Detection is a direct percentage chance of a blockade at the extraction
point. One uniform draw in [0, 100) per attempt; blocked when the draw
falls under the detection level.
"""

import logging
from typing import Callable

from ..state.catalog import Catalog
from ..state.schema import ExtractionCheck
from ..tools.rng import SeededRng

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_HOSTILE = "Heavy Cruiser Defense Pattern"


class DetectionGate:
    """Decides whether extraction is blocked and who intercepts."""

    def __init__(
        self,
        catalog: Catalog,
        rng: SeededRng | None = None,
        fallback_hostile: str = DEFAULT_FALLBACK_HOSTILE,
    ):
        self.catalog = catalog
        self.rng = rng or SeededRng()
        self.fallback_hostile = fallback_hostile

    def roll(self, detection: float) -> tuple[bool, float]:
        """One blockade draw. Returns (blocked, sample)."""
        sample = self.rng.random() * 100
        return sample < detection, sample

    def select_hostile(self, tier: int) -> str:
        """Pick an interceptor from the tier's high-threat roster."""
        hostile = self.rng.select(self.catalog.high_threat_roster(tier))
        if hostile is None:
            logger.warning(
                "No high-threat roster for tier %s, using %s", tier, self.fallback_hostile
            )
            return self.fallback_hostile
        return hostile

    def attempt_extraction(
        self,
        detection: float,
        tier: int,
        consume_clearance: Callable[[], bool] | None = None,
    ) -> ExtractionCheck:
        """
        Check whether extraction is intercepted.

        Args:
            detection: Current detection level, 0-100
            tier: Map tier, selects the interceptor roster
            consume_clearance: Uses one clearance item; returns False if
                none was available. Tried before any draw is made.

        Returns:
            ExtractionCheck with blocked flag and, when blocked, the hostile id
        """
        if consume_clearance is not None and consume_clearance():
            logger.info("Clearance used, extraction unopposed")
            return ExtractionCheck(blocked=False, clearance_used=True)

        blocked, sample = self.roll(detection)
        if not blocked:
            logger.info("Extraction clear (roll %.1f vs detection %.1f)", sample, detection)
            return ExtractionCheck(blocked=False, roll=sample)

        hostile_id = self.select_hostile(tier)
        logger.info(
            "Extraction blocked by %s (roll %.1f vs detection %.1f)",
            hostile_id, sample, detection,
        )
        return ExtractionCheck(blocked=True, hostile_id=hostile_id, roll=sample)
