"""
Actions that plugins ask drivers to carry out on resources.
"""

import json
from enum import Enum
from typing import Dict, List, Optional


class ActionKind(str, Enum):
    """What an action does. Drivers register one handler per kind."""
    NOOP = "noop"
    SET_TAG = "setTag"
    UNSET_TAG = "unsetTag"
    START = "start"
    STOP = "stop"
    RESTORE_SECURITY_GROUP = "restoreSecurityGroup"


class Action:
    """
    An intended change to a resource.

    ``who`` is the name of the plugin or driver that asked for it, kept for
    attribution only. ``done`` is flipped by the reconciliation step once the
    action has been folded into an execution group.
    """

    changes_state = False

    def __init__(self, who: str, what: ActionKind, reason: str = "", pretend: bool = False):
        self.who = who
        self.what = what
        self.reason = reason
        self.pretend = pretend
        self.done = False

    def like(self, other: "Action") -> bool:
        """Two actions are alike when executing one makes the other redundant."""
        return self.what == other.what

    def executes_as(self, other: "Action") -> bool:
        """True when a single execution of ``other`` carries this action out as well."""
        return self.pretend == other.pretend

    def swallow(self, other: "Action") -> bool:
        """Merge ``other`` into this action. Returns True if it was absorbed."""
        return False

    @property
    def present(self) -> str:
        return self.what.value

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.present} by {self.who}{' (done)' if self.done else ''}>"


class TagAction(Action):
    """Base for actions carrying tags; keys are unique within one action."""

    def __init__(self, who: str, what: ActionKind, tags: Dict[str, str], reason: str = ""):
        super().__init__(who, what, reason)
        self.tags: Dict[str, str] = dict(tags)

    @property
    def tag_keys(self) -> List[str]:
        return list(self.tags)

    @property
    def aws_tags(self) -> List[Dict[str, str]]:
        """Tags in the ``[{"Key": ..., "Value": ...}]`` shape AWS APIs expect."""
        return [{"Key": k, "Value": v} for k, v in self.tags.items()]

    def like(self, other: Action) -> bool:
        return (
            self.what == other.what
            and isinstance(other, TagAction)
            and set(self.tags) == set(other.tags)
        )

    def executes_as(self, other: Action) -> bool:
        return super().executes_as(other) and isinstance(other, TagAction) and self.tags == other.tags

    def swallow(self, other: Action) -> bool:
        if not isinstance(other, TagAction):
            return False
        for key, value in other.tags.items():
            # first writer wins
            self.tags.setdefault(key, value)
        return True


class NoopAction(Action):
    def __init__(self, who: str, reason: str):
        super().__init__(who, ActionKind.NOOP, reason)

    def like(self, other: Action) -> bool:
        return self.what == other.what and self.reason == other.reason

    @property
    def present(self) -> str:
        return f"noop because {self.reason}"


class SetTagAction(TagAction):
    def __init__(self, who: str, tag: str, value: str, reason: str = ""):
        super().__init__(who, ActionKind.SET_TAG, {tag: value}, reason)

    @property
    def present(self) -> str:
        return f"set tags {json.dumps(self.aws_tags)}"


class UnsetTagAction(TagAction):
    def __init__(self, who: str, tag: str, reason: str = ""):
        super().__init__(who, ActionKind.UNSET_TAG, {tag: ""}, reason)

    @property
    def present(self) -> str:
        return f"unset tags {json.dumps(self.tag_keys)}"


class StartAction(Action):
    changes_state = True

    def __init__(self, who: str, reason: str = "", pretend: bool = False):
        super().__init__(who, ActionKind.START, reason, pretend)


class StopAction(Action):
    changes_state = True

    def __init__(self, who: str, reason: str = "", pretend: bool = False):
        super().__init__(who, ActionKind.STOP, reason, pretend)


class RestoreSecurityGroupAction(Action):
    """Put back security groups that were swapped out while a database was parked."""

    def __init__(self, who: str, reason: str = "", group_ids: Optional[List[str]] = None):
        super().__init__(who, ActionKind.RESTORE_SECURITY_GROUP, reason)
        self.group_ids = list(group_ids or [])
