"""
Slot generation and booking status lifecycles.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

TIME_FORMAT = "%H:%M"

# Appointments and grooming bookings share one lifecycle
BOOKING_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}

ORDER_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("dispatched", "cancelled"),
    "dispatched": ("delivered",),
    "delivered": (),
    "cancelled": (),
}

BOARDING_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("approved", "rejected"),
    "approved": (),
    "rejected": (),
}


class InvalidTransition(ValueError):
    pass


def parse_time(value: str) -> datetime:
    try:
        return datetime.strptime(value, TIME_FORMAT)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")


def normalize_time(value: str) -> str:
    """'9:05' -> '09:05'. Stored times must be zero-padded to compare as strings."""
    return parse_time(value).strftime(TIME_FORMAT)


def generate_time_slots(start_time: str, end_time: str, duration_minutes: int) -> List[Dict[str, str]]:
    """
    Split [start_time, end_time) into back-to-back slots of duration_minutes.

    A trailing interval shorter than the duration is dropped, so no slot
    ends after end_time.
    """
    if duration_minutes <= 0:
        raise ValueError("Slot duration must be positive")
    start = parse_time(start_time)
    end = parse_time(end_time)
    if start >= end:
        raise ValueError("Start time must be before end time")

    step = timedelta(minutes=duration_minutes)
    slots = []
    current = start
    while current + step <= end:
        slot_end = current + step
        slots.append({
            "start_time": current.strftime(TIME_FORMAT),
            "end_time": slot_end.strftime(TIME_FORMAT),
        })
        current = slot_end
    return slots


def slots_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    # HH:MM strings compare in clock order
    return a_start < b_end and b_start < a_end


def find_overlap(start_time: str, end_time: str, existing: List[Dict]) -> Optional[Dict]:
    for slot in existing:
        if slots_overlap(start_time, end_time, slot["start_time"], slot["end_time"]):
            return slot
    return None


def check_transition(current: str, new: str, transitions: Dict[str, Tuple[str, ...]]) -> bool:
    """
    Validate a status change.

    Returns False when the status is unchanged (nothing to write), True when
    the move is allowed, and raises InvalidTransition otherwise.
    """
    if new not in transitions:
        raise InvalidTransition(f"Unknown status '{new}'")
    if current == new:
        return False
    if new not in transitions.get(current, ()):
        raise InvalidTransition(f"Cannot change status from '{current}' to '{new}'")
    return True


def minutes_until(appointment_date: str, start_time: str, now: datetime) -> float:
    """Minutes from `now` (naive local time) to the start of an appointment."""
    starts_at = datetime.strptime(f"{appointment_date} {start_time}", f"%Y-%m-%d {TIME_FORMAT}")
    return (starts_at - now).total_seconds() / 60
