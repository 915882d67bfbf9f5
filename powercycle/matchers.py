"""
Matcher resolution: pick the centrally-defined policy that applies to a resource.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .filters import Filter
from .resources import Resource
from .schedule import DEFAULT_BARRIER_TOLERANCE, Directive, evaluate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Matcher:
    """A named, prioritised (filter, schedule) pair."""
    name: str
    filter: Optional[Filter]
    schedule: str
    priority: float = 0
    pretend: bool = False

    @property
    def description(self) -> str:
        return f"{self.name} ({self.schedule})"


def normalise_priority(priority) -> float:
    """NaN and missing priorities count as 0."""
    try:
        value = float(priority)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(value) else value


def sort_matchers(matchers: Iterable[Matcher]) -> List[Matcher]:
    """Highest priority first; equal priorities keep their configured order."""
    return sorted(matchers, key=lambda m: normalise_priority(m.priority), reverse=True)


def find_matches(resource: Resource, matchers: List[Matcher], now: datetime) -> List[Matcher]:
    """
    All matchers whose filter matches the resource, in priority order.

    Filter errors, such as a JMESPath that doesn't fit this kind of resource,
    count as no match.
    """
    matched = []
    for matcher in matchers:
        if matcher.filter is None:
            continue
        try:
            if matcher.filter.matches(resource, now):
                matched.append(matcher)
        except Exception as e:
            logger.debug(f'Matcher "{matcher.name}" error ignored for {resource.resource_id}: {e}')
    return matched


def resolve(
    resource: Resource,
    matchers: List[Matcher],
    now: datetime,
    schedule_tag_name: str = "Schedule",
    tag_priority: float = 0,
) -> Optional[Matcher]:
    """
    Choose the matcher that decides this resource's schedule.

    Args:
        resource: Resource being evaluated
        matchers: Matchers sorted by descending priority
        now: Run time
        schedule_tag_name: Tag holding a resource's own schedule
        tag_priority: Priority given to that tag

    Returns:
        The winning matcher, a synthetic ``Tag:<name>`` matcher when the
        resource's own schedule tag wins, or None if nothing applies
    """
    matches = find_matches(resource, matchers, now)
    best = matches[0] if matches else None

    tagged = resource.tag(schedule_tag_name)
    tag_priority = normalise_priority(tag_priority)
    if tagged is not None and (best is None or tag_priority >= normalise_priority(best.priority)):
        return Matcher(
            name=f"Tag:{schedule_tag_name}",
            filter=None,
            schedule=tagged,
            priority=tag_priority,
        )
    return best


def invalid_matchers(
    matchers: Iterable[Matcher],
    reference_time: datetime,
    barrier_tolerance: timedelta = DEFAULT_BARRIER_TOLERANCE,
) -> List[Matcher]:
    """Matchers whose schedule can't be parsed."""
    return [
        m for m in matchers
        if evaluate(m.schedule, reference_time, barrier_tolerance)[0] == Directive.UNPARSEABLE
    ]
