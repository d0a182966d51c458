"""Utilities for computing when a weekly interest next takes place."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Iterable, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigurationError, MalformedInterest, NoInterestsConfigured
from .models import Interest, ScheduledOccurrence

WEEKDAY_INDICES = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def load_zone(name: str) -> ZoneInfo:
    """Return the ZoneInfo for ``name`` or fail with a ConfigurationError."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ConfigurationError(f"load timezone {name!r}: {exc}") from exc


def parse_weekday(name: str) -> int:
    """Map an English weekday name to ``datetime.weekday()`` numbering."""
    try:
        return WEEKDAY_INDICES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown weekday {name!r}") from None


def parse_start_time(time_range: str) -> Tuple[int, int]:
    """Parse the start of a ``HH:MM-HH:MM`` range (seconds and suffixes are ignored)."""
    start = time_range.split("-")[0].strip()
    parts = start.split(":")
    if len(parts) < 2:
        raise ValueError(f"invalid start time {start!r}")

    try:
        hour = int(parts[0].strip())
        minute = int(parts[1].strip())
    except ValueError:
        raise ValueError(f"invalid start time {start!r}") from None

    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"start time out of range {start!r}")
    return hour, minute


def next_occurrence(reference: datetime, zone: ZoneInfo, weekday: int, hour: int, minute: int) -> datetime:
    """
    Return the first ``weekday`` at ``hour:minute`` in ``zone`` strictly after ``reference``.

    Days are stepped on the calendar, so the wall-clock time is kept across DST
    changes. A reference that falls exactly on the slot yields the slot one week
    later. Naive references are read as wall-clock time in ``zone``.
    """
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=zone)
    local_reference = reference.astimezone(zone)
    reference_utc = reference.astimezone(timezone.utc)

    slot = time(hour, minute)
    candidate_date = local_reference.date()
    while True:
        candidate = datetime.combine(candidate_date, slot, tzinfo=zone)
        if candidate.weekday() == weekday and candidate.astimezone(timezone.utc) > reference_utc:
            return candidate
        candidate_date += timedelta(days=1)


def occurrence_for(interest: Interest, zone: ZoneInfo, reference: datetime) -> datetime:
    """Next start of ``interest``; raises MalformedInterest on unparseable fields."""
    try:
        weekday = parse_weekday(interest.day_english)
    except ValueError as exc:
        raise MalformedInterest(interest, "day_english", str(exc)) from exc

    try:
        hour, minute = parse_start_time(interest.time)
    except ValueError as exc:
        raise MalformedInterest(interest, "time", str(exc)) from exc

    return next_occurrence(reference, zone, weekday, hour, minute)


def next_scheduled_occurrence(
    interests: Iterable[Interest],
    zone: ZoneInfo,
    reference: datetime,
    settled: Optional[Mapping[Interest, datetime]] = None,
) -> ScheduledOccurrence:
    """
    Pick the interest whose next occurrence comes first.

    ``settled`` holds, per interest, the start of an occurrence already booked by
    this process; that interest is computed from the settled start instead so
    the same class is not picked twice. Ties keep the first interest seen.
    """
    settled = settled or {}
    earliest: Optional[ScheduledOccurrence] = None

    for interest in interests:
        interest_reference = reference
        settled_at = settled.get(interest)
        if settled_at is not None and settled_at > interest_reference:
            interest_reference = settled_at

        starts_at = occurrence_for(interest, zone, interest_reference)
        if earliest is None or starts_at < earliest.starts_at:
            earliest = ScheduledOccurrence(interest=interest, starts_at=starts_at)

    if earliest is None:
        raise NoInterestsConfigured()
    return earliest
