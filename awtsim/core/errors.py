"""Exception hierarchy for the simulation engine."""

from typing import Iterable, List, Optional


class SimulationError(Exception):
    """Base class for every error raised by awtsim."""


class ConfigurationError(SimulationError, ValueError):
    """Raised when a configuration is invalid or incomplete.

    Attributes:
        errors: Individual validation problems, one message each
    """

    def __init__(self, message: str, errors: Optional[Iterable[str]] = None):
        self.errors: List[str] = list(errors or [])
        if self.errors:
            details = "\n".join(f"  - {error}" for error in self.errors)
            message = f"{message}\n{details}"
        super().__init__(message)


class ResourceLimitError(ConfigurationError):
    """Raised when configured quantities exceed the allowed limits."""


class SimulationStateError(SimulationError):
    """Raised when the simulation API is used in the wrong phase."""


class InvariantViolationError(SimulationError):
    """Raised on a broken engine invariant (a defect, never retried).

    Attributes:
        request_id: Request involved, if any
        server_id: Server involved, if any
        tick: Simulated tick at which the violation was detected
        transition: Attempted transition or operation
    """

    def __init__(self, message: str, request_id: Optional[int] = None,
                 server_id: Optional[int] = None, tick: Optional[int] = None,
                 transition: Optional[str] = None):
        self.request_id = request_id
        self.server_id = server_id
        self.tick = tick
        self.transition = transition

        context = []
        if request_id is not None:
            context.append(f"request={request_id}")
        if server_id is not None:
            context.append(f"server={server_id}")
        if tick is not None:
            context.append(f"tick={tick}")
        if transition is not None:
            context.append(f"transition={transition}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)
