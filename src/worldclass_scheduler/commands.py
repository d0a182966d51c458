"""The fetch and schedule workflows behind the CLI."""

from __future__ import annotations

from typing import List, Optional

import structlog

from .alerting import Alerter, build_alerter
from .config import Settings
from .discovery import WorldClassClient
from .matching import filter_sessions
from .models import ClassSession, InterestResult
from .scheduler import BookingLoop, Clock, Portal

LOGGER = structlog.get_logger(__name__)


async def run_fetch(settings: Settings, *, show_all: bool = False, portal: Optional[Portal] = None) -> List[ClassSession]:
    """Fetch classes and log their booking status, filtered by interests unless ``show_all``."""
    portal = portal or WorldClassClient.from_settings(settings)
    sessions = await portal.fetch_sessions(settings.credentials, settings.clubs)

    if not show_all:
        sessions = filter_sessions(sessions, settings.interests_by_club())

    if not sessions:
        LOGGER.info("fetch.no_match", message="no classes matched your filters")
        return sessions

    for session in sessions:
        fields = {
            "club": session.club_name,
            "day": session.day,
            "time": session.time,
            "title": session.title,
            "trainer": session.trainer,
            "class_id": session.class_id,
        }
        if session.already_booked:
            LOGGER.info("fetch.already_booked", **fields)
        elif session.bookable:
            LOGGER.info("fetch.bookable", **fields)
        else:
            LOGGER.info("fetch.scheduled", status="booking closed", **fields)

    return sessions


async def run_schedule(
    settings: Settings,
    *,
    loop: bool = False,
    portal: Optional[Portal] = None,
    alerter: Optional[Alerter] = None,
    clock: Optional[Clock] = None,
) -> Optional[List[InterestResult]]:
    """Book interested classes once, or keep booking them forever with ``loop``."""
    portal = portal or WorldClassClient.from_settings(settings)

    if not loop:
        return await BookingLoop(settings, portal, clock=clock).run_once()

    booking_loop = BookingLoop(
        settings,
        portal,
        alerter=alerter or build_alerter(settings),
        clock=clock,
    )
    LOGGER.info("loop.start", timezone=settings.timezone, interests=len(settings.interest_list()))
    await booking_loop.run_forever()
    return None
