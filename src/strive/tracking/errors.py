"""
Failure conditions raised by the recording core.

Every error derives from TrackingError so UI code can catch the family in one
place and still branch on the concrete type:

  PermissionDenied     location permission refused; start() did nothing
  InsufficientData     fewer than two accepted points at save(); still recording
  PersistenceFailure   session store or activity API rejected an operation
  ProviderUnavailable  the location stream failed mid-session
  InvalidTransition    event not allowed in the current state
"""
from typing import Optional


class TrackingError(RuntimeError):
    """Base class for recording-core failures."""


class PermissionDenied(TrackingError):
    """Raised when foreground or background location access is refused."""

    def __init__(self, scope: str):
        super().__init__(f"{scope} location permission denied")
        self.scope = scope


class InsufficientData(TrackingError):
    """Raised when a session is saved with fewer than two accepted points."""

    def __init__(self, point_count: int, required: int = 2):
        super().__init__(
            f"not enough GPS points to save activity ({point_count} < {required})"
        )
        self.point_count = point_count
        self.required = required


class PersistenceFailure(TrackingError):
    """Raised when the session store or the activity API rejects an operation."""


class ProviderUnavailable(TrackingError):
    """Raised (or reported) when the location stream errors mid-session."""


class InvalidTransition(TrackingError):
    """Raised when an event is not allowed in the current session status."""

    def __init__(self, status: str, event: str, detail: Optional[str] = None):
        message = f"cannot {event} while {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status = status
        self.event = event
