"""Tests for the extraction gate."""

from eremos.state.catalog import Catalog, TierConfig, default_catalog
from eremos.systems.detection import DEFAULT_FALLBACK_HOSTILE, DetectionGate
from eremos.tools.rng import MODULUS, SeededRng


class TestBlockadeRoll:
    """Test the blockade draw."""

    def test_zero_detection_never_blocks(self):
        gate = DetectionGate(default_catalog(), rng=SeededRng(1))
        assert not any(gate.roll(0)[0] for _ in range(1000))

    def test_full_detection_always_blocks(self):
        gate = DetectionGate(default_catalog(), rng=SeededRng(1))
        assert all(gate.roll(100)[0] for _ in range(1000))

    def test_blocked_rate_matches_detection(self):
        """Over a full generator period the blocked rate is exactly d/100."""
        gate = DetectionGate(default_catalog(), rng=SeededRng(1))

        blocked = sum(1 for _ in range(MODULUS) if gate.roll(25)[0])

        assert blocked == MODULUS // 4

    def test_blocked_rate_converges(self):
        gate = DetectionGate(default_catalog(), rng=SeededRng(2024))
        trials = 50_000

        blocked = sum(1 for _ in range(trials) if gate.roll(40)[0])

        assert abs(blocked / trials - 0.40) < 0.02


class TestAttemptExtraction:
    """Test extraction attempts end to end."""

    def test_blocked_picks_from_tier_roster(self):
        catalog = default_catalog()
        gate = DetectionGate(catalog, rng=SeededRng(3))

        check = gate.attempt_extraction(100, tier=2)

        assert check.blocked
        assert check.hostile_id in catalog.high_threat_roster(2)
        assert check.roll is not None

    def test_empty_roster_falls_back(self):
        catalog = Catalog(tiers={1: TierConfig(tier=1, high_threat_roster=[])})
        gate = DetectionGate(catalog, rng=SeededRng(3))

        check = gate.attempt_extraction(100, tier=1)

        assert check.blocked
        assert check.hostile_id == DEFAULT_FALLBACK_HOSTILE

    def test_unknown_tier_falls_back(self):
        gate = DetectionGate(default_catalog(), rng=SeededRng(3), fallback_hostile="Picket Line")
        assert gate.attempt_extraction(100, tier=99).hostile_id == "Picket Line"

    def test_clear_extraction(self):
        gate = DetectionGate(default_catalog(), rng=SeededRng(3))

        check = gate.attempt_extraction(0, tier=1)

        assert not check.blocked
        assert check.hostile_id is None

    def test_clearance_skips_draw(self):
        """Consuming clearance guarantees safe extraction without touching the RNG."""
        rng = SeededRng(3)
        gate = DetectionGate(default_catalog(), rng=rng)
        state_before = rng.state

        check = gate.attempt_extraction(100, tier=1, consume_clearance=lambda: True)

        assert not check.blocked
        assert check.clearance_used
        assert check.roll is None
        assert rng.state == state_before

    def test_failed_clearance_falls_through(self):
        gate = DetectionGate(default_catalog(), rng=SeededRng(3))

        check = gate.attempt_extraction(100, tier=1, consume_clearance=lambda: False)

        assert check.blocked
        assert not check.clearance_used

    def test_same_seed_same_outcome(self):
        a = DetectionGate(default_catalog(), rng=SeededRng(77))
        b = DetectionGate(default_catalog(), rng=SeededRng(77))
        results_a = [a.attempt_extraction(50, tier=3).model_dump() for _ in range(20)]
        results_b = [b.attempt_extraction(50, tier=3).model_dump() for _ in range(20)]
        assert results_a == results_b
