"""
Power-cycle resources according to their own schedule tag.
"""

import logging
from datetime import datetime

from ..actions import NoopAction, SetTagAction, StartAction, StopAction
from ..config import AccountConfig, PowerCycleConfig
from ..resources import RUNNING, Resource
from ..schedule import Directive, evaluate
from .base import Plugin

logger = logging.getLogger(__name__)

SUPPORTED_RESOURCES = ("ec2", "rdsCluster", "rdsInstance", "redshiftCluster", "redshiftClusterSnapshot", "local")


class PowerCyclePlugin(Plugin):
    """
    Reads the schedule tag (``Schedule`` by default) and starts or stops the
    resource accordingly.

    Problems are reported back on the resource as a ``Warning<tag>`` tag, and
    the reason for a state change as a ``Reason<tag>`` tag.
    """

    supported_resources = SUPPORTED_RESOURCES

    def __init__(self, account: AccountConfig, name: str, config: PowerCycleConfig):
        super().__init__(account, name, config)
        self.schedule_tag = config.availability_tag or "Schedule"
        self.warning_tag = f"Warning{self.schedule_tag}"
        self.reason_tag = f"Reason{self.schedule_tag}"

    async def generate_actions(self, resource: Resource, now: datetime) -> Resource:
        schedule = resource.tag(self.schedule_tag)
        if schedule is None:
            logger.debug(f'{self.log_prefix}: tag "{self.schedule_tag}" is missing on {resource.resource_id}')
            resource.add_action(SetTagAction(self.name, self.warning_tag, f"Tag {self.schedule_tag} is missing"))
            return resource

        directive, reason = evaluate(schedule, self.resource_time(resource, now))

        if directive == Directive.UNPARSEABLE:
            logger.warning(f"{self.log_prefix}: tag {schedule} on {resource.resource_id} couldn't be parsed: {reason}")
            resource.add_action(SetTagAction(self.name, self.warning_tag, reason))
        elif directive == Directive.START:
            logger.debug(f"{self.log_prefix}: {resource.resource_id} should be started: {reason}")
            resource.add_action(StartAction(self.name, reason))
            if resource.resource_state != RUNNING:
                resource.add_action(SetTagAction(self.name, self.reason_tag, reason))
        elif directive == Directive.STOP:
            logger.debug(f"{self.log_prefix}: {resource.resource_id} should be stopped: {reason}")
            resource.add_action(StopAction(self.name, reason))
            if resource.resource_state == RUNNING:
                resource.add_action(SetTagAction(self.name, self.reason_tag, reason))
        else:
            logger.debug(f"{self.log_prefix}: {resource.resource_id} should be left alone: {reason}")
            resource.add_action(NoopAction(self.name, reason))

        return resource
