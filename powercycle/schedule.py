"""
Availability schedule evaluation.

A schedule string says when a resource should be available, for example::

    24x7                      always on
    0x7                       always off
    24x5                      on during weekdays
    Start=08:30;Stop=17:30    daily window
    Start=08:30|mon-fri;Stop=17:30|mon-fri
    Stop=19:00                stop barrier, fires once around 19:00
    Override=on               leave the resource alone

Evaluation is pure and total: malformed strings produce ``UNPARSEABLE`` with a
reason, never an exception.
"""

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple

WEEKDAYS = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
WEEKDAY_ABBR = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

DEFAULT_BARRIER_TOLERANCE = timedelta(minutes=15)

_DAYS_PATTERN = "|".join(WEEKDAYS)
_OVERRIDE_RE = re.compile(r"override(=(on|off|yes|no))?")


class Directive(str, Enum):
    """Outcome of evaluating a schedule."""
    START = "START"
    STOP = "STOP"
    NOOP = "NOOP"
    UNPARSEABLE = "UNPARSEABLE"


def format_reason_time(t: datetime) -> str:
    """Render a time the way reasons show it, e.g. ``Wed 15:02 +11``."""
    return f"{WEEKDAY_ABBR[t.weekday()]} {t.strftime('%H:%M')} {_narrow_offset(t)}"


def _narrow_offset(t: datetime) -> str:
    offset = t.utcoffset() or timedelta(0)
    minutes = int(offset.total_seconds() // 60)
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    if mins:
        return f"{sign}{hours}:{mins:02d}"
    return f"{sign}{hours}"


def _at(t: datetime, hour: int, minute: int) -> datetime:
    # Only hour and minute move; seconds stay, so comparisons are at minute resolution
    return t.replace(hour=hour, minute=minute)


class ParsedComponent:
    """One ``start=`` or ``stop=`` clause: a time of day and an optional day range."""

    def __init__(self, tag: str, component: str):
        self.hour: int = 0
        self.minute: int = 0
        self.day_from: Optional[int] = None
        self.day_to: Optional[int] = None
        self._re = re.compile(
            rf"({component}=([0-9]{{1,2}}):([0-9]{{1,2}}))(\|(({_DAYS_PATTERN})-({_DAYS_PATTERN})))?"
        )
        self.is_set = self._parse(tag)

    def _parse(self, tag: str) -> bool:
        m = self._re.search(tag.lower())
        if m is None:
            return False

        hour, minute = int(m.group(2)), int(m.group(3))
        if hour > 23 or minute > 59:
            return False
        self.hour, self.minute = hour, minute

        if m.group(5) is not None:
            # isoweekday numbering, Monday is 1
            self.day_from = WEEKDAYS.index(m.group(6)) + 1
            self.day_to = WEEKDAYS.index(m.group(7)) + 1
        return True

    @property
    def time(self) -> str:
        return f"{self.hour}:{self.minute:02d}"

    @property
    def days(self) -> Optional[str]:
        if self.day_from is not None and self.day_to is not None:
            return f"{WEEKDAYS[self.day_from - 1]}-{WEEKDAYS[self.day_to - 1]}"
        return None

    def day_in(self, day: int) -> bool:
        """True if ``day`` (1=Mon .. 7=Sun) is within the range; ranges may wrap the week."""
        if self.day_from is None or self.day_to is None:
            return True
        if self.day_from > self.day_to:
            return day <= self.day_to or self.day_from <= day
        return self.day_from <= day <= self.day_to

    def barrier_fires(self, now: datetime, tolerance: timedelta) -> bool:
        """True from this time of day on ``now``'s date until ``tolerance`` has passed."""
        barrier = _at(now, self.hour, self.minute)
        return barrier <= now < barrier + tolerance


class ParsedAvailability:
    """Everything a schedule string says, parsed fresh for every evaluation."""

    def __init__(self, tag: str):
        self.tag = tag.replace("/", ";").replace("_", "|").lower()
        self.override = self._parse_override()
        self.literal = self._parse_literal()
        self.start = ParsedComponent(self.tag, "start")
        self.stop = ParsedComponent(self.tag, "stop")

    def _parse_override(self) -> bool:
        m = _OVERRIDE_RE.search(self.tag)
        if m is None:
            return False
        return m.group(1) is None or m.group(2) in ("yes", "on")

    def _parse_literal(self) -> Optional[str]:
        if "24x7" in self.tag:
            return "24x7"
        if "24x5" in self.tag:
            return "24x5"
        if "0x" in self.tag:
            return "0x7"
        return None

    @property
    def days(self) -> Optional[str]:
        return self.start.days or self.stop.days

    @property
    def is_invalid(self) -> bool:
        return not self.start.is_set and not self.stop.is_set

    @property
    def is_window(self) -> bool:
        return self.start.is_set and self.stop.is_set

    def _side_day_in(self, day: int) -> bool:
        if self.start.days is None:
            return self.stop.day_in(day)
        return self.start.day_in(day)

    def time_in(self, t: datetime) -> Optional[bool]:
        if not self.is_window:
            return None
        start_time = _at(t, self.start.hour, self.start.minute)
        stop_time = _at(t, self.stop.hour, self.stop.minute)
        if start_time > stop_time:
            return t < stop_time or t >= start_time
        return start_time <= t < stop_time

    def day_in(self, t: datetime) -> bool:
        d = t.isoweekday()
        if self.is_window:
            start_time = _at(t, self.start.hour, self.start.minute)
            stop_time = _at(t, self.stop.hour, self.stop.minute)
            if start_time > stop_time:
                if self._side_day_in(d):
                    return True
                # The part of a midnight-wrapping window after midnight belongs to the previous day
                if t < stop_time and self._side_day_in(7 if d == 1 else d - 1):
                    return True
                if t >= start_time and self._side_day_in(1 if d == 7 else d + 1):
                    return True
                return False
        return self._side_day_in(d)


def evaluate(
    tag: str,
    now: datetime,
    barrier_tolerance: timedelta = DEFAULT_BARRIER_TOLERANCE,
) -> Tuple[Directive, str]:
    """
    Decide what a resource with the given schedule should be doing right now.

    Args:
        tag: Schedule string
        now: Current time, already converted to the resource's timezone
        barrier_tolerance: How long after a lone start/stop time it still fires

    Returns:
        Tuple of (directive, human readable reason)
    """
    t = ParsedAvailability(tag)
    days = t.days or "all week"

    if t.override:
        return Directive.NOOP, "Availability override"
    if t.literal == "24x7":
        return Directive.START, "Availability 24x7"
    if t.literal == "0x7":
        return Directive.STOP, "Availability 0x7"
    if t.literal == "24x5":
        reason = f"Availability 24x5 and it is {WEEKDAY_NAMES[now.weekday()]} now"
        if now.isoweekday() <= 5:
            return Directive.START, reason
        return Directive.STOP, reason

    if t.is_invalid:
        return Directive.UNPARSEABLE, f"Tag {tag} is invalid, both start and stop specification are unreadable"

    if t.is_window:
        reason = (
            f"It's {format_reason_time(now)}, availability is from "
            f"{t.start.time} till {t.stop.time} {days}"
        )
        if t.time_in(now) and t.day_in(now):
            return Directive.START, reason
        return Directive.STOP, reason

    if t.start.is_set:
        reason = f"It's now {format_reason_time(now)}, resource starts at {t.start.time} {days}"
        if t.day_in(now) and t.start.barrier_fires(now, barrier_tolerance):
            return Directive.START, reason
        return Directive.NOOP, reason

    reason = f"It's now {format_reason_time(now)}, resource stops at {t.stop.time} {days}"
    if t.day_in(now) and t.stop.barrier_fires(now, barrier_tolerance):
        return Directive.STOP, reason
    return Directive.NOOP, reason


def simulate_week(
    schedule: str,
    start: datetime,
    step: timedelta = timedelta(minutes=15),
    running: bool = False,
) -> List[Tuple[datetime, bool]]:
    """
    Sample a schedule over seven days and track whether the resource would be running.

    NOOP and UNPARSEABLE keep the previous state, the same way periodic runs would.

    Args:
        schedule: Schedule string
        start: First sample time, in the timezone the schedule is meant for
        step: Sampling interval
        running: State before the first sample

    Returns:
        List of (sample time, running) pairs
    """
    results: List[Tuple[datetime, bool]] = []
    end = start + timedelta(days=7)
    t = start
    while t < end:
        directive, _ = evaluate(schedule, t)
        if directive == Directive.START:
            running = True
        elif directive == Directive.STOP:
            running = False
        results.append((t, running))
        t += step
    return results
