"""
vwap-core: multi-instrument VWAP / ADR / volume-profile trade engine.

No network, no files. Consumes bars, quotes and instrument specs through
injected collaborators; produces analytics, entries and stop updates.
Deterministic given its inputs and unit-testable with in-memory fakes.
"""

from vwap_core.contracts import (
    Bar,
    InstrumentSpec,
    InstrumentState,
    Position,
    ProfileLevels,
    Quote,
    Side,
    VolumeProfile,
)
from vwap_core.orchestrator import CycleResult, Orchestrator

__all__ = [
    "Bar",
    "CycleResult",
    "InstrumentSpec",
    "InstrumentState",
    "Orchestrator",
    "Position",
    "ProfileLevels",
    "Quote",
    "Side",
    "VolumeProfile",
]
