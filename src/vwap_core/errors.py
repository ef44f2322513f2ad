"""
Failure taxonomy for vwap-core.

None of these are fatal: the orchestrator catches them, logs, keeps the
last good state and tries again on the next cycle.
"""


class EngineError(Exception):
    """Base class for recoverable engine failures."""


class DataUnavailable(EngineError):
    """Bar or quote fetch failed or came back empty."""


class DegenerateRange(EngineError):
    """Zero-width session range or zero total volume."""


class ConstraintViolation(EngineError):
    """Stop/target inside the venue's minimum distance, or bad sizing inputs."""


class ExecutionFailure(EngineError):
    """The execution venue rejected an order, modify or close request."""
