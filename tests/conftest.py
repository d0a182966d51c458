"""Shared fakes for scheduler tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, List, Sequence

import pytest

from worldclass_scheduler.booking import BookingConfirmed
from worldclass_scheduler.config import Settings
from worldclass_scheduler.models import ClassSession

BASE_URL = "https://members.worldclass.ro"


def make_settings(interests: dict | None = None, **overrides: Any) -> Settings:
    data: dict[str, Any] = {
        "base_url": BASE_URL,
        "timezone": "Europe/Bucharest",
        "credentials": {"email": "me@example.com", "password": "secret"},
        "clubs": [{"id": "12", "name": "Titan"}],
        "interests": interests or {},
    }
    data.update(overrides)
    return Settings(**data)


def make_session(**overrides: Any) -> ClassSession:
    data: dict[str, Any] = {
        "club_id": "12",
        "club_name": "Titan",
        "day": "Luni 19.10",
        "time": "09:00-10:00",
        "title": "Pilates Mat",
        "trainer": "Ana",
        "class_id": "c1",
        "bookable": True,
        "already_booked": False,
    }
    data.update(overrides)
    return ClassSession(**data)


def _take(items: List[Any]) -> Any:
    """Pop the next scripted item; the last one repeats forever."""
    return items.pop(0) if len(items) > 1 else items[0]


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)


class FakeBookingSession:
    def __init__(self, outcomes: List[Any]):
        # Shared with the portal so a replacement session continues the script.
        self._outcomes = outcomes
        self.calls: List[tuple[str, str]] = []
        self.closed = False

    async def book(self, club_id: str, class_id: str):
        self.calls.append((club_id, class_id))
        outcome = _take(self._outcomes)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


class FakePortal:
    """Scripted discovery results and booking sessions.

    ``fetches`` holds one entry per discovery call: a list of sessions or an
    exception to raise. ``open_errors`` are raised by the first logins.
    """

    def __init__(
        self,
        fetches: Sequence[Any] = ([],),
        *,
        outcomes: Sequence[Any] = (BookingConfirmed(status_code=302),),
        open_errors: Sequence[BaseException] = (),
    ):
        self._fetches = list(fetches)
        self._outcomes = list(outcomes)
        self._open_errors = list(open_errors)
        self.fetch_count = 0
        self.sessions: List[FakeBookingSession] = []

    async def fetch_sessions(self, credentials, clubs):
        self.fetch_count += 1
        result = _take(self._fetches)
        if isinstance(result, BaseException):
            raise result
        return list(result)

    async def open_booking_session(self, credentials):
        if self._open_errors:
            raise self._open_errors.pop(0)
        session = FakeBookingSession(self._outcomes)
        self.sessions.append(session)
        return session

    @property
    def book_calls(self) -> List[tuple[str, str]]:
        return [call for session in self.sessions for call in session.calls]


class RecordingAlerter:
    def __init__(self):
        self.reports: List[tuple[BaseException, dict]] = []

    async def report(self, error, tags):
        self.reports.append((error, dict(tags)))


@pytest.fixture
def alerter() -> RecordingAlerter:
    return RecordingAlerter()
