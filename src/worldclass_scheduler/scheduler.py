"""The booking loop: wait for a class's booking window, then retry until booked or too late."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

import structlog

from .alerting import Alerter, NullAlerter
from .booking import BookingConfirmed, BookingOutcome, BookingRejected
from .config import Club, Credentials, Settings
from .errors import ConfigurationError, NoInterestsConfigured, PortalError
from .matching import find_matching_session
from .models import ClassSession, Interest, InterestResult, InterestStatus, ScheduledOccurrence
from .occurrence import load_zone, next_scheduled_occurrence

LOGGER = structlog.get_logger(__name__)

# Longest single sleep while waiting for a wake time; the wall clock is
# re-read after each one.
MAX_SLEEP_CHUNK = timedelta(minutes=5)


class LoopState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    RETRYING = "retrying"


class PhaseOutcome(str, Enum):
    SATISFIED = "satisfied"
    MISSED = "missed"


class Clock(Protocol):
    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall clock backed by asyncio; sleeps are cancellable."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class ReservationSession(Protocol):
    async def book(self, club_id: str, class_id: str) -> BookingOutcome: ...

    async def aclose(self) -> None: ...


class Portal(Protocol):
    async def fetch_sessions(self, credentials: Credentials, clubs: Sequence[Club]) -> List[ClassSession]: ...

    async def open_booking_session(self, credentials: Credentials) -> ReservationSession: ...


async def sleep_until(clock: Clock, deadline: datetime, max_chunk: timedelta = MAX_SLEEP_CHUNK) -> None:
    """Sleep until ``deadline`` in bounded steps so clock jumps are noticed."""
    while True:
        remaining = (deadline - clock.now()).total_seconds()
        if remaining <= 0:
            return
        await clock.sleep(min(remaining, max_chunk.total_seconds()))


def interest_satisfied(interest: Interest, results: Iterable[InterestResult]) -> bool:
    """True when the pass booked ``interest`` or found it already booked."""
    for result in results:
        if result.interest == interest:
            return result.status.satisfied
    return False


class _SessionSlot:
    """Holds the single booking session of a retry phase, opened on first use."""

    def __init__(self, portal: Portal, credentials: Credentials):
        self._portal = portal
        self._credentials = credentials
        self._session: Optional[ReservationSession] = None

    async def get(self) -> ReservationSession:
        if self._session is None:
            self._session = await self._portal.open_booking_session(self._credentials)
        return self._session

    async def aclose(self) -> None:
        if self._session is not None:
            session, self._session = self._session, None
            await session.aclose()


class BookingLoop:
    """Schedules and books configured interests.

    ``run_once`` makes one pass over every interest. ``run_forever`` cycles
    through IDLE (nothing configured), WAITING (sleeping until a booking window
    opens) and RETRYING (attempting the reservation until booked or past the
    cutoff). Portal errors are reported and retried; configuration errors end
    the loop.
    """

    def __init__(
        self,
        settings: Settings,
        portal: Portal,
        *,
        alerter: Optional[Alerter] = None,
        clock: Optional[Clock] = None,
        logger=None,
    ):
        self._settings = settings
        self._portal = portal
        self._alerter = alerter or NullAlerter()
        self._clock = clock or SystemClock()
        self._log = logger or LOGGER
        self._timing = settings.scheduling
        self._zone = load_zone(settings.timezone)
        self._settled: Dict[Interest, datetime] = {}
        self.state = LoopState.IDLE

    def wake_time(self, occurrence: ScheduledOccurrence) -> datetime:
        return occurrence.starts_at - self._timing.lead_time - self._timing.early_buffer

    def cutoff(self, occurrence: ScheduledOccurrence) -> datetime:
        return occurrence.starts_at + self._timing.grace_period

    async def run_once(self) -> List[InterestResult]:
        """One discovery and booking pass over every configured interest."""
        slot = _SessionSlot(self._portal, self._settings.credentials)
        try:
            return await self.schedule_pass(self._settings.interest_list(), slot)
        finally:
            await slot.aclose()

    async def run_forever(self) -> None:
        while True:
            await self.run_cycle()

    async def run_cycle(self) -> Optional[PhaseOutcome]:
        """Handle the next earliest occurrence; returns None when idling."""
        try:
            occurrence = next_scheduled_occurrence(
                self._settings.interest_list(),
                self._zone,
                self._clock.now(),
                self._settled,
            )
        except NoInterestsConfigured:
            self.state = LoopState.IDLE
            self._log.info("loop.idle", sleep_seconds=self._timing.idle_delay.total_seconds())
            await self._clock.sleep(self._timing.idle_delay.total_seconds())
            return None
        except ConfigurationError as exc:
            self._log.error("loop.configuration_error", error=str(exc))
            await self._report(exc, phase="next_interest")
            raise

        await self._wait_for_window(occurrence)
        outcome = await self._retry_phase(occurrence)
        if outcome is PhaseOutcome.SATISFIED:
            self._settled[occurrence.interest] = occurrence.starts_at
        return outcome

    async def _wait_for_window(self, occurrence: ScheduledOccurrence) -> None:
        interest = occurrence.interest
        wake_at = self.wake_time(occurrence)
        if wake_at > self._clock.now():
            self.state = LoopState.WAITING
            self._log.info(
                "loop.waiting",
                club=interest.club,
                day=interest.day,
                time=interest.time,
                starts_at=occurrence.starts_at.isoformat(),
                wake_at=wake_at.isoformat(),
            )
            await sleep_until(self._clock, wake_at)
        else:
            self._log.info("loop.window_open", club=interest.club, day=interest.day, time=interest.time)

    async def _retry_phase(self, occurrence: ScheduledOccurrence) -> PhaseOutcome:
        self.state = LoopState.RETRYING
        interest = occurrence.interest
        cutoff = self.cutoff(occurrence)
        slot = _SessionSlot(self._portal, self._settings.credentials)

        try:
            while True:
                if self._clock.now() > cutoff:
                    self._log.warning(
                        "loop.window_missed",
                        club=interest.club,
                        day=interest.day,
                        time=interest.time,
                        cutoff=cutoff.isoformat(),
                    )
                    return PhaseOutcome.MISSED

                try:
                    results = await self.schedule_pass([interest], slot)
                except PortalError as exc:
                    self._log.warning("loop.attempt_failed", club=interest.club, title=interest.title, error=str(exc))
                    await self._report(exc, phase="booking", club=interest.club, title=interest.title)
                else:
                    if interest_satisfied(interest, results):
                        self._log.info("loop.satisfied", club=interest.club, day=interest.day, time=interest.time)
                        return PhaseOutcome.SATISFIED

                await self._clock.sleep(self._timing.retry_delay.total_seconds())
        finally:
            await slot.aclose()

    async def schedule_pass(self, interests: Sequence[Interest], slot: _SessionSlot) -> List[InterestResult]:
        """Discover classes once and try to book each interest's match.

        Raises PortalError when discovery or the login for booking fails.
        Failed reservations are reported per interest as BOOKING_FAILED.
        """
        sessions = await self._portal.fetch_sessions(self._settings.credentials, self._settings.clubs)

        results: List[InterestResult] = []
        for interest in interests:
            result = InterestResult(interest=interest)
            results.append(result)

            session = find_matching_session(sessions, interest, self._log)
            if session is None:
                continue
            result.session = session

            if session.already_booked:
                self._log.info("booking.already_booked", **_session_fields(session))
                result.status = InterestStatus.ALREADY_BOOKED
                continue
            if not session.bookable:
                self._log.info("booking.not_open", **_session_fields(session))
                result.status = InterestStatus.NOT_OPEN
                continue
            if not session.class_id or not session.club_id:
                missing = "class" if not session.class_id else "club"
                self._log.warning("booking.missing_identifier", missing=missing, **_session_fields(session))
                result.status = InterestStatus.MISSING_DATA
                continue

            booking = await slot.get()
            self._log.info("booking.attempt", **_session_fields(session))
            try:
                outcome = await booking.book(session.club_id, session.class_id)
            except PortalError as exc:
                self._log.warning("booking.failed", error=str(exc), **_session_fields(session))
                result.status = InterestStatus.BOOKING_FAILED
                continue

            if isinstance(outcome, BookingConfirmed):
                self._log.info("booking.confirmed", **_session_fields(session))
                result.status = InterestStatus.BOOKED
            else:
                self._log.warning("booking.not_confirmed", reason=outcome.reason, **_session_fields(session))
                result.status = InterestStatus.BOOKING_FAILED
                if isinstance(outcome, BookingRejected):
                    # A redirect away from the schedule usually means the login expired.
                    await slot.aclose()

        if all(result.status is InterestStatus.NO_MATCH for result in results):
            self._log.info("booking.no_match")
        return results

    async def _report(self, error: BaseException, **tags: str) -> None:
        await self._alerter.report(error, {"mode": "loop", **tags})


def _session_fields(session: ClassSession) -> dict:
    return {
        "club": session.club_name,
        "day": session.day,
        "time": session.time,
        "title": session.title,
        "trainer": session.trainer,
        "class_id": session.class_id,
    }
