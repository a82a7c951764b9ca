"""
Run engine systems.

Each system operates on run state; the lifecycle coordinator owns the
session and delegates combat outcomes to the resolver.
"""

from .collaborators import (
    LootGenerator,
    ThreatTracker,
    ReputationService,
    MissionRecorder,
    MissionEvent,
)
from .detection import DetectionGate
from .extraction import ExtractionLimitCalculator
from .escape import EscapeResolver, would_destroy
from .outcomes import CombatOutcomeResolver, EngineError, StaleStateError
from .lifecycle import RunLifecycleCoordinator

__all__ = [
    # Collaborator interfaces
    "LootGenerator",
    "ThreatTracker",
    "ReputationService",
    "MissionRecorder",
    "MissionEvent",
    # Systems
    "DetectionGate",
    "ExtractionLimitCalculator",
    "EscapeResolver",
    "would_destroy",
    "CombatOutcomeResolver",
    "EngineError",
    "StaleStateError",
    "RunLifecycleCoordinator",
]
