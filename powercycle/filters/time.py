"""
Filters that depend on the current run time.
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional

from ..clock import parse_time, uptime_hours
from ..errors import FilterConfigError
from ..resources import RUNNING, Resource
from .base import Filter

logger = logging.getLogger(__name__)

_BETWEEN_RE = re.compile(r"between ([\d.]+) and ([\d.]+)")
_RANGE_RE = re.compile(r"([\d.]+)-([\d.]+)")


class UptimeFilter(Filter):
    """
    Match running resources by hours since launch.

    Accepts ``<N``, ``>N``, ``A-B`` and ``between A and B``. Anything else
    leaves both bounds unset and the filter never matches.
    """

    def __init__(self, config: Any):
        self.min_value: Optional[float] = None
        self.max_value: Optional[float] = None

        s = str(config).strip().lower()
        try:
            if s.startswith("<"):
                self.max_value = float(s[1:])
            elif s.startswith(">"):
                self.min_value = float(s[1:])
            else:
                m = _BETWEEN_RE.search(s) or _RANGE_RE.search(s)
                if m:
                    self.min_value = float(m.group(1))
                    self.max_value = float(m.group(2))
        except ValueError as exc:
            raise FilterConfigError(f"Invalid uptime filter {config!r}") from exc

        if self.min_value is None and self.max_value is None:
            logger.warning(f"Uptime filter {config!r} has no bounds and will never match")

    def matches(self, resource: Resource, now: datetime) -> bool:
        if self.min_value is None and self.max_value is None:
            return False
        if resource.resource_state != RUNNING:
            return False
        uptime = uptime_hours(resource.launch_time_utc, now)
        if uptime is None:
            return False
        if self.min_value is not None and uptime < self.min_value:
            return False
        if self.max_value is not None and uptime > self.max_value:
            return False
        return True

    def __repr__(self) -> str:
        return f"uptime({self.min_value}, {self.max_value})"


class MatchWindowFilter(Filter):
    """
    Match while the run time is within ``{"from": ..., "to": ...}``.

    Either bound may be omitted; ``from`` is inclusive and ``to`` exclusive.
    Times are ISO 8601, naive values are UTC. With no valid bound it never matches.
    """

    def __init__(self, config: Any):
        if not isinstance(config, dict):
            raise FilterConfigError(f"matchWindow needs a from/to mapping: {config!r}")

        self.start: Optional[datetime] = None
        self.end: Optional[datetime] = None
        invalid = False
        for key in ("from", "to"):
            value = config.get(key)
            if value is None:
                continue
            try:
                parsed = parse_time(value)
            except ValueError:
                logger.warning(f'MatchWindow "{key}" {value} is invalid')
                invalid = True
                continue
            if key == "from":
                self.start = parsed
            else:
                self.end = parsed

        # a window with a bad bound never matches
        if invalid:
            self.start = None
            self.end = None

    def matches(self, resource: Resource, now: datetime) -> bool:
        if self.start is None and self.end is None:
            return False
        if self.start is not None and now < self.start:
            return False
        if self.end is not None and now >= self.end:
            return False
        return True

    def __repr__(self) -> str:
        return f"matchWindow({self.start}, {self.end})"
