"""
Resources as seen by plugins and drivers during one run.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from .actions import Action
from .clock import parse_time

logger = logging.getLogger(__name__)

RUNNING = "running"
STOPPED = "stopped"
OTHER = "other"


class Resource(ABC):
    """
    A cloud resource collected by a driver.

    Holds the raw provider document, the actions plugins registered against it,
    and a free-form metadata bag for audit output.
    """

    def __init__(self, raw: Dict[str, Any]):
        self.raw = raw
        self.actions: List[Action] = []
        self.metadata: Dict[str, Any] = {}

    @property
    @abstractmethod
    def resource_id(self) -> str:
        pass

    @property
    @abstractmethod
    def resource_type(self) -> str:
        pass

    @property
    @abstractmethod
    def resource_arn(self) -> str:
        pass

    @property
    @abstractmethod
    def resource_state(self) -> str:
        """``running``, ``stopped`` or ``other``."""
        pass

    @property
    @abstractmethod
    def launch_time_utc(self) -> Optional[datetime]:
        pass

    @abstractmethod
    def tag(self, key: str) -> Optional[str]:
        pass

    @property
    def resource_tags(self) -> Dict[str, str]:
        return {}

    @property
    def region(self) -> Optional[str]:
        return _arn_part(self.resource_arn, 3)

    @property
    def account_id(self) -> Optional[str]:
        return _arn_part(self.resource_arn, 4)

    @property
    def pending_actions(self) -> List[Action]:
        return [a for a in self.actions if not a.done]

    def add_action(self, action: Action) -> bool:
        """
        Register an action, deduplicating against what is already pending.

        Returns:
            True if the action was appended or merged, False if it was dropped
        """
        pending = self.pending_actions

        if any(a.like(action) for a in pending):
            logger.warning(
                f"Not adding action {action.what.value} on {self.resource_type} {self.resource_id} "
                f"as there is already an action doing exactly that"
            )
            return False

        if action.changes_state and any(a.changes_state for a in pending):
            logger.warning(
                f"Not adding action {action.what.value} on {self.resource_type} {self.resource_id} "
                f"as there is already an action changing resource state"
            )
            return False

        for existing in pending:
            if existing.what == action.what and existing.swallow(action):
                logger.debug(f"Action {action.present} merged into {existing.present} on {self.resource_id}")
                return True

        self.actions.append(action)
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.resource_type} {self.resource_id}>"


def _arn_part(arn: Optional[str], index: int) -> Optional[str]:
    if not arn:
        return None
    parts = arn.split(":")
    if len(parts) > index and parts[index]:
        return parts[index]
    return None


def tags_from_list(tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    """Convert AWS ``[{"Key": k, "Value": v}]`` tag lists into a dict."""
    return {t["Key"]: t.get("Value", "") for t in (tags or []) if "Key" in t}


class LocalResource(Resource):
    """
    A resource described by a plain dict, as stored in a local resources file::

        {"resourceId": "i-1234", "resourceType": "ec2", "resourceState": "running",
         "resourceArn": "arn:aws:ec2:...", "launchTimeUtc": "2024-01-01T00:00:00Z",
         "tags": {"Schedule": "24x7"}, "resource": {...}}

    Tags may instead live in ``resource.Tags`` or ``resource.TagList``.
    """

    def __init__(self, entry: Dict[str, Any]):
        super().__init__(entry.get("resource") or {})
        self.entry = entry
        if "tags" in entry:
            self._tags = dict(entry["tags"] or {})
        else:
            self._tags = tags_from_list(self.raw.get("TagList") or self.raw.get("Tags"))

    @property
    def resource_id(self) -> str:
        return self.entry.get("resourceId", "")

    @property
    def resource_type(self) -> str:
        return self.entry.get("resourceType", "local")

    @property
    def resource_arn(self) -> str:
        return self.entry.get("resourceArn", "")

    @property
    def resource_state(self) -> str:
        return self.entry.get("resourceState", OTHER)

    @resource_state.setter
    def resource_state(self, value: str) -> None:
        self.entry["resourceState"] = value

    @property
    def launch_time_utc(self) -> Optional[datetime]:
        value = self.entry.get("launchTimeUtc")
        if value is None:
            return None
        return parse_time(value)

    def tag(self, key: str) -> Optional[str]:
        return self._tags.get(key)

    @property
    def resource_tags(self) -> Dict[str, str]:
        return dict(self._tags)

    def set_tags(self, tags: Dict[str, str]) -> None:
        self._tags.update(tags)

    def unset_tags(self, keys: List[str]) -> None:
        for key in keys:
            self._tags.pop(key, None)
