"""Exception hierarchy for the market simulator.

User-facing failures (bad order input, unknown order or lot ids) are never
raised; they come back as result values. Only the conditions below escape.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base exception for all simulator errors."""


class ConfigError(SimulationError):
    """Errors related to configuration loading or validation."""


class InvariantViolationError(SimulationError):
    """Internal consistency fault: a logic defect, never user error."""


class LedgerInvariantError(InvariantViolationError):
    """Lot set disagrees with the tracked position."""


class BookInvariantError(InvariantViolationError):
    """Synthesized book is crossed, unsorted or has the wrong depth."""


class SessionFaultedError(SimulationError):
    """Session stopped after an invariant violation."""


class SessionStateError(SimulationError):
    """Operation attempted during a tick, or while the simulator loop is stopped."""
