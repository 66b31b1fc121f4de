from datetime import datetime, date, timedelta
from typing import Dict, Iterable, List

from vidhanto.config import AVAILABILITY_UTC_OFFSET_MINUTES

DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
SLOT_MINUTES = 30
DEFAULT_DAY_START = "10:00"
DEFAULT_DAY_END = "19:00"


def to_local(value: datetime) -> datetime:
    """Shift a naive UTC datetime onto the lawyers' wall clock."""
    return value + timedelta(minutes=AVAILABILITY_UTC_OFFSET_MINUTES)


def to_utc(value: datetime) -> datetime:
    return value - timedelta(minutes=AVAILABILITY_UTC_OFFSET_MINUTES)


def normalize_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is not None:
        value = (value - value.utcoffset()).replace(tzinfo=None)
    return value


def day_name(value) -> str:
    return DAYS[value.weekday()]


def hhmm(value: datetime) -> str:
    return value.strftime("%H:%M")


def parse_hhmm(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def generate_time_slots(ranges: Iterable[Dict[str, str]]) -> List[str]:
    """Start times every 30 minutes inside each range, end exclusive.

    With no ranges configured the lawyer is treated as bookable from 10:00
    until 19:00.
    """
    ranges = list(ranges or [])
    if not ranges:
        ranges = [{"start": DEFAULT_DAY_START, "end": DEFAULT_DAY_END}]

    slots = []
    for window in ranges:
        current = parse_hhmm(window["start"])
        end = parse_hhmm(window["end"])
        while current < end:
            slot = format_minutes(current)
            if slot not in slots:
                slots.append(slot)
            current += SLOT_MINUTES
    return sorted(slots)


def local_slot_to_utc(day: date, slot: str) -> datetime:
    minutes = parse_hhmm(slot)
    local = datetime(day.year, day.month, day.day) + timedelta(minutes=minutes)
    return to_utc(local)
