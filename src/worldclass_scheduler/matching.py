"""Match discovered classes against configured interests."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Sequence

import structlog

from .models import ClassSession, Interest

LOGGER = structlog.get_logger(__name__)


def matches(session: ClassSession, interest: Interest, logger=None) -> bool:
    """Return True when ``session`` satisfies the day, time and title filters of ``interest``.

    Empty filters always pass. The title is first compared in full, then as a
    substring; both the substring case and the empty-title case are logged so
    over-broad interests show up in the logs.
    """
    logger = logger or LOGGER

    day_needle = interest.day.strip().casefold()
    if day_needle and day_needle not in session.day.strip().casefold():
        return False

    time_needle = interest.time.strip()
    if time_needle and session.time.strip().casefold() != time_needle.casefold():
        return False

    title_needle = interest.title.strip()
    if not title_needle:
        logger.info(
            "match.any_title",
            club=session.club_name,
            day=session.day,
            time=session.time,
            title=session.title,
        )
        return True

    session_title = session.title.strip()
    if session_title.casefold() == title_needle.casefold():
        return True

    if title_needle.casefold() in session_title.casefold():
        logger.info(
            "match.partial_title",
            interest_title=interest.title,
            title=session.title,
            club=session.club_name,
            day=session.day,
            time=session.time,
        )
        return True

    return False


def find_matching_session(
    sessions: Iterable[ClassSession], interest: Interest, logger=None
) -> Optional[ClassSession]:
    """First session of the interest's club that matches it."""
    for session in sessions:
        if session.club_name != interest.club:
            continue
        if matches(session, interest, logger):
            return session
    return None


def filter_sessions(
    sessions: Iterable[ClassSession],
    interests_by_club: Mapping[str, Sequence[Interest]],
    logger=None,
) -> List[ClassSession]:
    """Keep the sessions that match at least one interest of their own club."""
    filtered: List[ClassSession] = []
    for session in sessions:
        candidates = interests_by_club.get(session.club_name) or ()
        if any(matches(session, interest, logger) for interest in candidates):
            filtered.append(session)
    return filtered
