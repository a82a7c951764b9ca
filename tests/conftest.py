"""
Pytest fixtures for eremos tests.

Provides in-memory stores, sandbox collaborators, and a coordinator with
a profile holding the starter slot (0) and one custom slot (1).
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from eremos.simulation.sandbox import (
    LevelledReputationService,
    RecordingMissionTracker,
    ThreatMeter,
    demo_profile,
)
from eremos.state import EventBus, MemorySessionStore
from eremos.state.schema import (
    BlueprintExhausted,
    BlueprintLoot,
    CardLoot,
    LootBatch,
    LootSource,
    Rarity,
    SalvageItem,
)
from eremos.systems import RunLifecycleCoordinator
from eremos.tools import SeededRng


class ScriptedLoot:
    """Loot generator returning fixed batches and recording its calls."""

    def __init__(self):
        self.salvage = LootBatch(items=[
            CardLoot(
                card_id="LASER_BLAST", name="Laser Blast", source=LootSource.COMBAT_SALVAGE,
            ),
            SalvageItem(
                item_id="SCRAP", name="Scrap", credit_value=50, source=LootSource.COMBAT_SALVAGE,
            ),
        ])
        self.blueprint = BlueprintLoot(blueprint_id="DART", rarity=Rarity.COMMON)
        self.exhausted = False
        self.salvage_calls: list[tuple] = []
        self.blueprint_calls: list[tuple] = []

    def generate_salvage(self, deck, tier, difficulty):
        self.salvage_calls.append((list(deck), tier, difficulty))
        return self.salvage

    def generate_blueprint(self, category_id, tier, unlocked_ids):
        self.blueprint_calls.append((category_id, tier, list(unlocked_ids)))
        if self.exhausted:
            return BlueprintExhausted(category_id=category_id, tier=tier)
        return self.blueprint


@pytest.fixture
def memory_store():
    """In-memory session store for testing."""
    return MemorySessionStore()


@pytest.fixture
def loot():
    return ScriptedLoot()


@pytest.fixture
def threat():
    return ThreatMeter()


@pytest.fixture
def reputation():
    """Reputation level 0: no extraction bonus."""
    return LevelledReputationService(level=0)


@pytest.fixture
def missions():
    return RecordingMissionTracker()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def coordinator(memory_store, loot, threat, reputation, missions, bus):
    """Coordinator wired to in-memory collaborators with a fixed seed."""
    return RunLifecycleCoordinator(
        memory_store,
        loot=loot,
        threat=threat,
        reputation=reputation,
        missions=missions,
        bus=bus,
        rng=SeededRng(42),
    )


@pytest.fixture
def session(coordinator):
    """Fresh session with the demo profile (1000 credits)."""
    return coordinator.new_session(demo_profile())


@pytest.fixture
def starter_run(coordinator, session):
    """Active tier-1 run flying the starter slot."""
    result = coordinator.start_run(0, map_tier=1)
    assert result.success
    return coordinator.run


@pytest.fixture
def custom_run(coordinator, session):
    """Active tier-1 run flying custom slot 1."""
    result = coordinator.start_run(1, map_tier=1)
    assert result.success
    return coordinator.run
