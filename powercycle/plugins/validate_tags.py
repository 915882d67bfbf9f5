"""
Check that resources carry required tags.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import List

from ..actions import NoopAction, SetTagAction, StopAction, UnsetTagAction
from ..config import AccountConfig, ValidateTagsConfig
from ..resources import Resource
from .base import Plugin

logger = logging.getLogger(__name__)

# Freshly launched resources get this long to be tagged before they can be stopped
STOP_GRACE_PERIOD = timedelta(minutes=30)


class ValidateTagsPlugin(Plugin):
    """
    For each configured tag: warn about or stop resources missing it or whose
    value doesn't match ``match``, and clear the warning once the tag is valid.
    """

    supported_resources = (
        "ec2",
        "ebs",
        "snapshot",
        "rdsInstance",
        "rdsMultiAz",
        "rdsCluster",
        "redshiftCluster",
        "local",
    )

    def __init__(self, account: AccountConfig, name: str, config: ValidateTagsConfig):
        super().__init__(account, name, config)
        self.pattern = re.compile(config.match) if config.match else None

    def set_actions(self, resource: Resource, actions: List[str], tag: str, message: str, now: datetime) -> None:
        for action in actions or []:
            if action in ("warn", "warning"):
                resource.add_action(SetTagAction(self.name, f"Warning{tag}", message))
            elif action == "stop":
                launched = resource.launch_time_utc
                if launched is not None and now - launched > STOP_GRACE_PERIOD:
                    resource.add_action(StopAction(self.name, message))
                else:
                    resource.add_action(NoopAction(
                        self.name,
                        f"{resource.resource_type} {resource.resource_id} would've been stopped because "
                        f"tag {tag} is missing but it was created less than 30 minutes ago",
                    ))
            else:
                logger.error(f"{self.log_prefix}: action {action} is not supported")

    async def generate_actions(self, resource: Resource, now: datetime) -> Resource:
        for tag in self.config.tags:
            logger.debug(f"{self.log_prefix}: processing {resource.resource_type} {resource.resource_id}")
            value = resource.tag(tag)

            if value is None:
                logger.debug(f"Tag {tag} not found on {resource.resource_type} {resource.resource_id}")
                self.set_actions(resource, self.config.tag_missing, tag, f"Tag {tag} is missing", now)
                continue

            if self.pattern is not None and not self.pattern.search(value):
                self.set_actions(
                    resource,
                    self.config.tag_not_match,
                    tag,
                    f"Tag {tag} doesn't match regex /{self.config.match}/",
                    now,
                )
                continue

            logger.debug(
                f"{self.log_prefix}: {resource.resource_type} {resource.resource_id} tag [{tag}] = [{value}], "
                f"validation successful, removing warning tag"
            )
            resource.add_action(UnsetTagAction(self.name, f"Warning{tag}"))

        return resource
