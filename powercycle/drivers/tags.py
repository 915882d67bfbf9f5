"""
Tag setting and removal for EC2-style resources.
"""

import asyncio
import json
import logging
from typing import Any, List, Optional

from ..actions import TagAction
from ..resources import Resource

logger = logging.getLogger(__name__)

CHUNK_SIZE = 200


def chunks(items: List[Any], size: int = CHUNK_SIZE) -> List[List[Any]]:
    """Split a list into consecutive chunks of at most ``size`` items."""
    return [items[i:i + size] for i in range(0, len(items), size)]


def mask_set_tag(resource: Resource, action: TagAction) -> Optional[str]:
    if all(resource.tag(key) == value for key, value in action.tags.items()):
        return f"{resource.resource_type} {resource.resource_id} already has tags {json.dumps(action.tag_keys)}"
    return None


def mask_unset_tag(resource: Resource, action: TagAction) -> Optional[str]:
    if all(resource.tag(key) is None for key in action.tags):
        return f"{resource.resource_type} {resource.resource_id} has none of tags {json.dumps(action.tag_keys)}"
    return None


class Ec2Tagger:
    """Tags resources through the EC2 ``create_tags``/``delete_tags`` calls, 200 ids at a time."""

    async def set_tag(self, ec2, resources: List[Resource], action: TagAction) -> None:
        logger.info(f"EC2 {[r.resource_id for r in resources]} will be set tags {json.dumps(action.aws_tags)}")
        for chunk in chunks(resources):
            await asyncio.to_thread(
                ec2.create_tags,
                Resources=[r.resource_id for r in chunk],
                Tags=action.aws_tags,
            )

    async def unset_tag(self, ec2, resources: List[Resource], action: TagAction) -> None:
        logger.info(f"EC2 {[r.resource_id for r in resources]} will be unset tags {json.dumps(action.tag_keys)}")
        for chunk in chunks(resources):
            await asyncio.to_thread(
                ec2.delete_tags,
                Resources=[r.resource_id for r in chunk],
                Tags=[{"Key": key} for key in action.tag_keys],
            )


ec2_tagger = Ec2Tagger()
