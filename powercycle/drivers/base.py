"""
Driver base class and the reconciliation of pending actions into grouped executions.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..actions import Action, ActionKind
from ..aws import ClientFactory
from ..config import AccountConfig, DriverConfig
from ..resources import Resource

logger = logging.getLogger(__name__)

ExecuteFn = Callable[[List[Resource], Action], Awaitable[None]]
MaskFn = Callable[[Resource, Action], Optional[str]]

EXECUTED = "executed"
PRETENDED = "pretended"
FAILED = "failed"


@dataclass
class ActionHandler:
    """
    How a driver carries out one kind of action.

    ``mask`` returns a reason to skip a resource, or None to keep it in the group.
    """
    execute: ExecuteFn
    mask: Optional[MaskFn] = None


@dataclass
class ActionGroup:
    """One execution: an action applied to every resource that asked for something like it."""
    action: Action
    resources: List[Resource]
    outcome: Optional[str] = None
    error: Optional[str] = None

    @property
    def resource_ids(self) -> List[str]:
        return [r.resource_id for r in self.resources]


def to_limited_string(resources: Iterable[Resource], limit: int = 5) -> str:
    """
    Render resource ids for a log line, e.g. ``i-1, i-2, i-3, i-4, i-5... (12)``.
    """
    ids = [r.resource_id for r in resources]
    shown = ", ".join(ids[:limit])
    if len(ids) > limit:
        shown += "..."
    return f"{shown} ({len(ids)})".strip()


class Driver(ABC):
    """
    Collects one kind of resource for an account and carries out actions on them.

    Subclasses implement ``collect`` and declare what they can do in
    ``action_handlers``; ``process_actions`` does the rest.
    """

    resource_type: str = ""

    def __init__(self, account: AccountConfig, config: DriverConfig,
                 clients: Optional[ClientFactory] = None):
        self.account = account
        self.config = config
        self.clients = clients
        self.handlers: Dict[ActionKind, ActionHandler] = self.action_handlers()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def pretend(self) -> bool:
        return self.config.pretend

    @property
    def log_prefix(self) -> str:
        return f"{self.account.label} {self.name}"

    def action_handlers(self) -> Dict[ActionKind, ActionHandler]:
        """Map each supported action kind to its handler."""
        return {ActionKind.NOOP: ActionHandler(self.noop)}

    async def initialise(self) -> None:
        pass

    @abstractmethod
    async def collect(self) -> List[Resource]:
        """Fetch this driver's resources for the account."""

    def recognise_resource(self, resource: Resource) -> bool:
        return resource.resource_type == self.resource_type

    async def noop(self, resources: List[Resource], action: Action) -> None:
        logger.info(f"{self.log_prefix}: no action on {to_limited_string(resources)}: {action.reason}")

    def plan_actions(self, resources: List[Resource]) -> List[ActionGroup]:
        """
        Collapse the pending actions of a batch into execution groups.

        For each pending action, every resource holding a like action that
        executes the same way joins the group unless the handler's mask vetoes
        it. Either way that action is marked done, so each group is visited
        once. Like actions with a different pretend flag or different tag
        values stay pending and form their own group.

        Args:
            resources: Resources recognised by this driver

        Returns:
            Groups in the order their first action was found
        """
        groups: List[ActionGroup] = []

        for resource in resources:
            for action in resource.pending_actions:
                if action.done:
                    continue

                handler = self.handlers.get(action.what)
                members: List[Resource] = []

                for candidate in resources:
                    like = next(
                        (a for a in candidate.pending_actions if a.like(action) and a.executes_as(action)),
                        None,
                    )
                    if like is None:
                        continue
                    like.done = True

                    if handler is None:
                        continue
                    veto = handler.mask(candidate, like) if handler.mask else None
                    if veto is not None:
                        logger.debug(
                            f"{self.log_prefix}: masked {action.what.value} on {candidate.resource_id}: {veto}"
                        )
                        continue
                    members.append(candidate)

                if handler is None:
                    logger.error(f"{self.log_prefix}: driver does not support action {action.what.value}")
                    continue

                if members:
                    groups.append(ActionGroup(action, members))

        return groups

    async def execute_group(self, group: ActionGroup) -> ActionGroup:
        """Run one group, or log it in pretend mode. Failures are logged, not raised."""
        action = group.action
        ids = to_limited_string(group.resources)

        if self.pretend or action.pretend:
            logger.info(f"{self.log_prefix}: pretending to {action.present} on {ids}")
            group.outcome = PRETENDED
            return group

        logger.info(f"{self.log_prefix}: {action.present} on {ids}")
        try:
            await self.handlers[action.what].execute(group.resources, action)
            group.outcome = EXECUTED
        except Exception as e:
            logger.exception(f"{self.log_prefix}: failed to {action.what.value} {ids}")
            group.outcome = FAILED
            group.error = str(e)
        return group

    async def process_actions(self, resources: List[Resource]) -> List[ActionGroup]:
        """
        Reconcile and execute the pending actions of a batch of resources.

        Args:
            resources: Resources recognised by this driver

        Returns:
            The groups that were executed, pretended or failed
        """
        groups = self.plan_actions(resources)
        for group in groups:
            await self.execute_group(group)
        return groups
