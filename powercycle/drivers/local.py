"""
Driver over resources described in a local JSON file.

Actions are applied to the in-memory resources only, which makes it suitable
for dry runs against a snapshot of real resources and for tests.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..actions import Action, ActionKind, TagAction
from ..errors import ConfigurationError
from ..resources import RUNNING, STOPPED, LocalResource, Resource
from .base import ActionHandler, Driver
from .tags import mask_set_tag, mask_unset_tag

logger = logging.getLogger(__name__)


class LocalDriver(Driver):
    resource_type = "local"

    def action_handlers(self) -> Dict[ActionKind, ActionHandler]:
        handlers = super().action_handlers()
        handlers.update({
            ActionKind.START: ActionHandler(self.start, self.mask_start),
            ActionKind.STOP: ActionHandler(self.stop, self.mask_stop),
            ActionKind.SET_TAG: ActionHandler(self.set_tag, mask_set_tag),
            ActionKind.UNSET_TAG: ActionHandler(self.unset_tag, mask_unset_tag),
        })
        return handlers

    def recognise_resource(self, resource: Resource) -> bool:
        return isinstance(resource, LocalResource)

    def _read_resources(self) -> List[Dict]:
        if not self.config.resources_file:
            raise ConfigurationError(f"Driver {self.name} needs a resourcesFile")
        path = Path(self.config.resources_file)
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    async def collect(self) -> List[Resource]:
        entries = await asyncio.to_thread(self._read_resources)
        logger.debug(f"{self.log_prefix}: loaded {len(entries)} resources from {self.config.resources_file}")
        return [LocalResource(entry) for entry in entries]

    def mask_start(self, resource: LocalResource, action: Action) -> Optional[str]:
        if resource.resource_state == RUNNING:
            return f"{resource.resource_type} {resource.resource_id} is already running"
        return None

    def mask_stop(self, resource: LocalResource, action: Action) -> Optional[str]:
        if resource.resource_state == STOPPED:
            return f"{resource.resource_type} {resource.resource_id} is already stopped"
        return None

    async def start(self, resources: List[LocalResource], action: Action) -> None:
        for resource in resources:
            logger.debug(f'"Started" {resource.resource_type} {resource.resource_id}')
            resource.resource_state = RUNNING

    async def stop(self, resources: List[LocalResource], action: Action) -> None:
        for resource in resources:
            logger.debug(f'"Stopped" {resource.resource_type} {resource.resource_id}')
            resource.resource_state = STOPPED

    async def set_tag(self, resources: List[LocalResource], action: TagAction) -> None:
        for resource in resources:
            logger.debug(f'"Set Tags" on {resource.resource_type} {resource.resource_id} -> {action.tags}')
            resource.set_tags(action.tags)

    async def unset_tag(self, resources: List[LocalResource], action: TagAction) -> None:
        for resource in resources:
            logger.debug(f'"Unset Tags" on {resource.resource_type} {resource.resource_id} -> {action.tag_keys}')
            resource.unset_tags(action.tag_keys)
