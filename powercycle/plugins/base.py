"""
Policy plugin base class.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Tuple

from ..clock import local_time
from ..config import AccountConfig
from ..resources import Resource

logger = logging.getLogger(__name__)


class Plugin(ABC):
    """
    Looks at resources and registers the actions it wants on them.

    Plugins never touch the cloud themselves; drivers carry out the actions.
    """

    supported_resources: Tuple[str, ...] = ()

    def __init__(self, account: AccountConfig, name: str, config: Any):
        self.account = account
        self.name = name
        self.config = config

    @property
    def log_prefix(self) -> str:
        return f"{self.account.label} {self.name}"

    def is_applicable(self, resource: Resource) -> bool:
        return resource.resource_type in self.supported_resources

    async def initialise(self) -> None:
        pass

    def resource_time(self, resource: Resource, now: datetime) -> datetime:
        """The run time in the resource's timezone (tag, then account setting, then UTC)."""
        tz = resource.tag(self.account.settings.timezone_tag) or self.account.settings.timezone or "utc"
        logger.debug(f"{self.log_prefix}: processing {resource.resource_type} {resource.resource_id}, timezone {tz}")
        return local_time(now, tz)

    @abstractmethod
    async def generate_actions(self, resource: Resource, now: datetime) -> Resource:
        """Register zero or more actions on the resource and return it."""
