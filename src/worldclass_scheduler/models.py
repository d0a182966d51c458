"""Shared data models used across the scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class Interest:
    """A recurring class the user wants tracked or booked.

    ``day`` is the portal's own day label and is only matched against scraped
    text; ``day_english`` drives the date arithmetic. Identity is
    (club, day, time, title).
    """

    club: str
    day: str = ""
    time: str = ""
    title: str = ""
    day_english: str = field(default="", compare=False)

    def describe(self) -> str:
        return f"{self.club} | {self.day} | {self.time}"


@dataclass(frozen=True)
class ClassSession:
    """A single class discovered on the member schedule page."""

    club_id: str
    club_name: str
    day: str
    time: str
    title: str
    trainer: str = ""
    room: str = ""
    class_id: str = ""
    bookable: bool = False
    already_booked: bool = False

    def describe(self) -> str:
        return f"{self.club_name} | {self.day} | {self.time} | {self.title}"


@dataclass(frozen=True)
class ScheduledOccurrence:
    """An interest paired with the next instant its weekly slot recurs."""

    interest: Interest
    starts_at: datetime


class InterestStatus(str, Enum):
    """Outcome of one discovery pass for one interest."""

    NO_MATCH = "no_match"
    ALREADY_BOOKED = "already_booked"
    NOT_OPEN = "not_open"
    MISSING_DATA = "missing_data"
    BOOKING_FAILED = "booking_failed"
    BOOKED = "booked"

    @property
    def satisfied(self) -> bool:
        return self in (InterestStatus.BOOKED, InterestStatus.ALREADY_BOOKED)


@dataclass
class InterestResult:
    """Status recorded for an interest after a scheduling pass."""

    interest: Interest
    status: InterestStatus = InterestStatus.NO_MATCH
    session: ClassSession | None = None
