"""Scrape the member schedule pages into structured class sessions."""

from __future__ import annotations

import asyncio
import re
from typing import List, Optional, Sequence

import httpx
import structlog
from bs4 import BeautifulSoup, Tag
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .booking import BookingSession
from .config import Club, Credentials, Settings
from .errors import DiscoveryError
from .models import ClassSession
from .portal import SCHEDULE_PATH, login, portal_url

LOGGER = structlog.get_logger(__name__)

DAY_SELECTOR = "div.schedule-day > strong"
CLASS_SELECTOR = ".schedule-class"
HOURS_SELECTOR = "div.col-xs-7.col-sm-12 > span.class-hours"
ROOM_SELECTOR = "div.col-xs-7.col-sm-12 > span.room"
TITLE_SELECTOR = "div.col-xs-7.col-sm-12 > strong.class-title"
TRAINERS_SELECTOR = "div.col-xs-7.col-sm-12 > span.trainers"
RESERVE_ANCHOR_SELECTOR = "div.col-xs-5.col-sm-12.text-right > a"
BOOK_BUTTON_SELECTOR = ".btn-book-class"
CANCEL_CLASS = "cancel-link"


class WorldClassClient:
    """Entry point to the member portal: schedule discovery and booking sessions."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("base URL is required")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "WorldClassClient":
        return cls(
            settings.base_url,
            timeout=settings.scheduling.request_timeout.total_seconds(),
            **kwargs,
        )

    async def fetch_sessions(self, credentials: Credentials, clubs: Sequence[Club]) -> List[ClassSession]:
        """Log in and return every class listed for ``clubs``.

        Club schedules are requested concurrently; any failure fails the whole
        call with a single error rather than returning partial results.
        """
        if not clubs:
            raise ValueError("at least one club is required")

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            await login(client, self._base_url, credentials)
            pages = await asyncio.gather(
                *(self._fetch_club_schedule(client, club) for club in clubs),
                return_exceptions=True,
            )

        sessions: List[ClassSession] = []
        for club, page in zip(clubs, pages):
            if isinstance(page, BaseException):
                raise page
            sessions.extend(parse_schedule(page, club_id=club.id, club_name=club.name))

        LOGGER.info("discovery.complete", clubs=len(clubs), sessions=len(sessions))
        return sessions

    async def open_booking_session(self, credentials: Credentials) -> BookingSession:
        return await BookingSession.open(
            self._base_url,
            credentials,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _fetch_club_schedule(self, client: httpx.AsyncClient, club: Club) -> str:
        """Fetch one club's schedule page, retrying transport failures."""
        url = portal_url(self._base_url, SCHEDULE_PATH)
        LOGGER.debug("discovery.club.start", club=club.name, club_id=club.id)
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                stop=stop_after_attempt(3),
                reraise=True,
            ):
                with attempt:
                    response = await client.post(
                        url,
                        data={"clubid": club.id, "group": "-1"},
                        follow_redirects=False,
                    )
                    response.raise_for_status()
                    return response.text
        except httpx.HTTPError as exc:
            LOGGER.warning("discovery.club.failed", club=club.name, club_id=club.id, error=str(exc))
            raise DiscoveryError(f"request schedule for club {club.name} ({club.id}): {exc}") from exc
        raise DiscoveryError(f"request schedule for club {club.name} ({club.id}) gave no response")


def parse_schedule(html: str, *, club_id: str, club_name: str) -> List[ClassSession]:
    """Turn a member schedule page into ClassSession records."""
    soup = BeautifulSoup(html, "html.parser")
    sessions: List[ClassSession] = []

    for day_block in soup.select(".daily-schedule"):
        day = _child_text(day_block, DAY_SELECTOR)
        for element in day_block.select(CLASS_SELECTOR):
            button = element.select_one(BOOK_BUTTON_SELECTOR)
            already_booked = button is not None and CANCEL_CLASS in (button.get("class") or [])

            sessions.append(
                ClassSession(
                    club_id=club_id,
                    club_name=club_name or "Unknown club",
                    day=day,
                    time=_child_text(element, HOURS_SELECTOR),
                    room=_child_text(element, ROOM_SELECTOR),
                    title=_child_text(element, TITLE_SELECTOR),
                    trainer=_child_text(element, TRAINERS_SELECTOR),
                    class_id=_class_id(element),
                    bookable=button is not None and not already_booked,
                    already_booked=already_booked,
                )
            )

    return sessions


def _child_text(element: Tag, selector: str) -> str:
    """Concatenated, whitespace-normalised text of every match of ``selector``."""
    return normalise_whitespace(" ".join(node.get_text(" ") for node in element.select(selector)))


def _class_id(element: Tag) -> str:
    anchor = element.select_one(RESERVE_ANCHOR_SELECTOR)
    if anchor is None:
        return ""
    target = str(anchor.get("data-target") or "").strip()
    return target.removeprefix("#").removeprefix("class-")


def normalise_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""
    return re.sub(r"\s+", " ", text or "").strip()
