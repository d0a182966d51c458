"""Authenticated reservation requests against the member portal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import httpx
import structlog

from .config import Credentials
from .errors import BookingRequestError
from .portal import BOOK_CLASS_PATH, SCHEDULE_PATH, login, normalise_location, portal_url

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BookingConfirmed:
    """The portal accepted the reservation."""

    status_code: int
    location: Optional[str] = None


@dataclass(frozen=True)
class BookingRejected:
    """The portal redirected somewhere other than the schedule page."""

    location: str

    @property
    def reason(self) -> str:
        return f"booking rejected, redirected to {self.location}"


@dataclass(frozen=True)
class BookingUnexpectedStatus:
    """The portal answered with a status that is neither 200 nor a redirect."""

    status_code: int

    @property
    def reason(self) -> str:
        return f"booking unexpected status {self.status_code}"


BookingOutcome = Union[BookingConfirmed, BookingRejected, BookingUnexpectedStatus]


class BookingSession:
    """A logged-in conversation with the portal used to submit reservations.

    The underlying client keeps the session cookies and never follows
    redirects: where the portal redirects to is the answer. Calls must not be
    issued concurrently on one session.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self._client = client
        self._base_url = base_url.rstrip("/")

    @classmethod
    async def open(
        cls,
        base_url: str,
        credentials: Credentials,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "BookingSession":
        """Log in and return a session ready to book; raises AuthenticationError."""
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=False, transport=transport)
        try:
            await login(client, base_url, credentials)
        except BaseException:
            await client.aclose()
            raise
        LOGGER.info("booking.session_opened", email=credentials.email)
        return cls(client, base_url)

    async def __aenter__(self) -> "BookingSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def book(self, club_id: str, class_id: str) -> BookingOutcome:
        """Reserve ``class_id`` at ``club_id`` and classify the portal's answer.

        Raises BookingRequestError when no response arrives; the session stays
        usable for the next attempt.
        """
        if not club_id or not class_id:
            raise ValueError("club_id and class_id are required")

        url = portal_url(self._base_url, BOOK_CLASS_PATH)
        try:
            response = await self._client.get(url, params={"id": class_id, "clubid": club_id})
        except httpx.HTTPError as exc:
            raise BookingRequestError(f"booking request: {exc}") from exc

        if response.is_redirect:
            location = normalise_location(self._base_url, response.headers.get("location", ""))
            if location == portal_url(self._base_url, SCHEDULE_PATH):
                return BookingConfirmed(status_code=response.status_code, location=location)
            return BookingRejected(location=location)

        if response.status_code == httpx.codes.OK:
            # Some responses do not redirect but still indicate success.
            return BookingConfirmed(status_code=response.status_code)

        return BookingUnexpectedStatus(status_code=response.status_code)
