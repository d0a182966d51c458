"""Error types raised by the scheduler.

Two families matter to callers:

- ``ConfigurationError``: the configuration cannot drive the scheduler
  (unknown timezone, malformed interest). Fatal, never retried.
- ``PortalError``: a conversation with the member portal failed (login
  rejected, schedule unreachable, reservation request lost). Recoverable in
  loop mode; the next retry tick tries again.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Interest


class WorldClassError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(WorldClassError):
    """Raised when the configuration is unusable."""


class NoInterestsConfigured(ConfigurationError):
    """Raised when an occurrence is requested but no interests exist."""

    def __init__(self) -> None:
        super().__init__("no class interests configured")


class MalformedInterest(ConfigurationError):
    """Raised when an interest's weekday or start time cannot be parsed.

    Attributes:
        interest: The offending interest
        field: Name of the field that failed to parse ("day_english" or "time")
    """

    def __init__(self, interest: "Interest", field: str, reason: str):
        self.interest = interest
        self.field = field
        self.reason = reason
        super().__init__(
            f"parse {field} for {interest.club} ({interest.title or 'any title'}): {reason}"
        )


class PortalError(WorldClassError):
    """Base class for failures talking to the member portal."""


class AuthenticationError(PortalError):
    """Raised when the portal does not accept the login."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, location: Optional[str] = None):
        self.status_code = status_code
        self.location = location
        super().__init__(message)


class DiscoveryError(PortalError):
    """Raised when the class schedule could not be fetched."""


class BookingRequestError(PortalError):
    """Raised when a reservation request never got a response."""
