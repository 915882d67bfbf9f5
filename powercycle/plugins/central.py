"""
Power-cycle resources according to centrally configured matchers, optionally
overridden by the resource's own schedule tag.
"""

import logging
from datetime import datetime, timedelta
from typing import List

from ..actions import NoopAction, SetTagAction, StartAction, StopAction
from ..clock import utc_now
from ..config import AccountConfig, PowerCycleCentralConfig
from ..filters import build_filter
from ..matchers import Matcher, invalid_matchers, resolve, sort_matchers
from ..resources import Resource
from ..schedule import Directive, evaluate
from .base import Plugin
from .powercycle import SUPPORTED_RESOURCES

logger = logging.getLogger(__name__)


class PowerCycleCentralPlugin(Plugin):
    supported_resources = SUPPORTED_RESOURCES

    def __init__(self, account: AccountConfig, name: str, config: PowerCycleCentralConfig):
        super().__init__(account, name, config)
        self.schedule_tag = config.availability_tag or "Schedule"
        self.warning_tag = f"Warning{self.schedule_tag}"
        self.tag_priority = config.availability_tag_priority
        self.barrier_tolerance = timedelta(minutes=config.barrier_tolerance_minutes)
        self.matchers: List[Matcher] = []

    async def initialise(self) -> None:
        """
        Build matcher filters and resolve predefined schedule names.

        Matchers whose schedule can't be parsed are logged and left out.

        Raises:
            FilterConfigError: If a matcher's filter is malformed
        """
        predefined = self.config.predefined_schedules
        matchers = [
            Matcher(
                name=m.name,
                filter=build_filter(m.filter),
                schedule=predefined.get(m.schedule, m.schedule),
                priority=m.priority,
                pretend=m.pretend,
            )
            for m in self.config.matchers
        ]

        invalid = invalid_matchers(matchers, utc_now(), self.barrier_tolerance)
        if invalid:
            logger.error(
                f'{self.log_prefix}: plugin has invalid schedules "{",".join(m.schedule for m in invalid)}", '
                f"ignoring matchers {[m.name for m in invalid]}"
            )
        self.matchers = sort_matchers(m for m in matchers if m not in invalid)

    async def generate_actions(self, resource: Resource, now: datetime) -> Resource:
        local_now = self.resource_time(resource, now)
        match = resolve(resource, self.matchers, now, self.schedule_tag, self.tag_priority)
        if match is None:
            logger.debug(f"{self.log_prefix}: no schedule matching resource {resource.resource_id}")
            return resource

        logger.debug(f'{self.log_prefix}: match for "{match.name}", checking availability {match.schedule}')
        directive, reason = evaluate(match.schedule, local_now, self.barrier_tolerance)
        resource.metadata["highestMatch"] = match.description
        reason = f"[{match.name}]: {reason}"

        if directive == Directive.UNPARSEABLE:
            logger.warning(f"{self.log_prefix}: schedule {match.schedule} couldn't be parsed: {reason}")
            resource.add_action(SetTagAction(self.name, self.warning_tag, reason))
        elif directive == Directive.START:
            logger.debug(f"{self.log_prefix}: {resource.resource_id} should be started: {reason}")
            resource.add_action(StartAction(self.name, reason, match.pretend))
        elif directive == Directive.STOP:
            logger.debug(f"{self.log_prefix}: {resource.resource_id} should be stopped: {reason}")
            resource.add_action(StopAction(self.name, reason, match.pretend))
        else:
            logger.debug(f"{self.log_prefix}: {resource.resource_id} should be left alone: {reason}")
            resource.add_action(NoopAction(self.name, reason))

        return resource
