"""
EC2 instance driver.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from ..actions import Action, ActionKind
from ..aws import client_factory
from ..clock import parse_time
from ..resources import OTHER, RUNNING, STOPPED, Resource, tags_from_list
from .base import ActionHandler, Driver, to_limited_string
from .tags import chunks, ec2_tagger, mask_set_tag, mask_unset_tag

logger = logging.getLogger(__name__)

INOPERABLE_STATES = ("terminated", "shutting-down")

_STATES = {
    "pending": RUNNING,
    "running": RUNNING,
    "stopping": STOPPED,
    "stopped": STOPPED,
}


class Ec2Resource(Resource):
    """An instance as returned by ``describe_instances``, plus its ASG name if any."""

    def __init__(self, instance: Dict[str, Any], arn: str):
        super().__init__(instance)
        self.arn = arn

    @property
    def resource_id(self) -> str:
        return self.raw["InstanceId"]

    @property
    def resource_type(self) -> str:
        return "ec2"

    @property
    def resource_arn(self) -> str:
        return self.arn

    @property
    def resource_state(self) -> str:
        return _STATES.get(self.raw.get("State", {}).get("Name"), OTHER)

    @property
    def launch_time_utc(self) -> Optional[datetime]:
        # stopped instances keep their original launch time
        launch_time = self.raw.get("LaunchTime")
        return parse_time(launch_time) if launch_time is not None else None

    @property
    def autoscaling_group(self) -> Optional[str]:
        return self.raw.get("AutoScalingGroupName")

    @property
    def is_spot(self) -> bool:
        return self.raw.get("InstanceLifecycle") == "spot"

    def tag(self, key: str) -> Optional[str]:
        return self.resource_tags.get(key)

    @property
    def resource_tags(self) -> Dict[str, str]:
        return tags_from_list(self.raw.get("Tags"))


class Ec2Driver(Driver):
    """
    Starts, stops and tags EC2 instances.

    Instances in an Auto Scaling group have the group's processes suspended
    before they stop and resumed after they start, so the group doesn't
    replace them.
    """

    resource_type = "ec2"
    asg_resume_delay = 2.0

    def action_handlers(self) -> Dict[ActionKind, ActionHandler]:
        handlers = super().action_handlers()
        handlers.update({
            ActionKind.START: ActionHandler(self.start, self.mask_start),
            ActionKind.STOP: ActionHandler(self.stop, self.mask_stop),
            ActionKind.SET_TAG: ActionHandler(self.set_tag, mask_set_tag),
            ActionKind.UNSET_TAG: ActionHandler(self.unset_tag, mask_unset_tag),
        })
        return handlers

    async def initialise(self) -> None:
        if self.clients is None:
            self.clients = client_factory(self.account.account_id, self.account.settings)

    def _describe_instances(self) -> List[Dict[str, Any]]:
        paginator = self.clients("ec2").get_paginator("describe_instances")
        instances = []
        for page in paginator.paginate():
            for reservation in page.get("Reservations", []):
                instances.extend(reservation.get("Instances", []))
        return instances

    def _describe_autoscaling_groups(self) -> List[Dict[str, Any]]:
        paginator = self.clients("autoscaling").get_paginator("describe_auto_scaling_groups")
        groups = []
        for page in paginator.paginate():
            groups.extend(page.get("AutoScalingGroups", []))
        return groups

    async def collect(self) -> List[Resource]:
        logger.debug(f"{self.log_prefix}: collecting EC2 instances")
        instances = await asyncio.to_thread(self._describe_instances)
        groups = await asyncio.to_thread(self._describe_autoscaling_groups)

        membership = {
            member["InstanceId"]: group["AutoScalingGroupName"]
            for group in groups
            for member in group.get("Instances", [])
        }

        resources: List[Resource] = []
        for instance in instances:
            instance_id = instance["InstanceId"]
            state = instance.get("State", {}).get("Name")
            if state in INOPERABLE_STATES:
                logger.info(f"{self.log_prefix}: EC2 instance {instance_id} state {state} is inoperable")
                continue
            if instance_id in membership:
                instance["AutoScalingGroupName"] = membership[instance_id]
                logger.debug(f"Instance {instance_id} is member of ASG {membership[instance_id]}")
            arn = f"arn:aws:ec2:{self.account.settings.region}:{self.account.account_id}:instance/{instance_id}"
            resources.append(Ec2Resource(instance, arn))
        return resources

    def mask_start(self, resource: Ec2Resource, action: Action) -> Optional[str]:
        if resource.resource_state == RUNNING:
            return f"EC2 instance {resource.resource_id} is in status {resource.resource_state}"
        if resource.is_spot:
            return f"EC2 instance {resource.resource_id} is a spot instance"
        return None

    def mask_stop(self, resource: Ec2Resource, action: Action) -> Optional[str]:
        if resource.resource_state == STOPPED:
            return f"EC2 instance {resource.resource_id} is in status {resource.resource_state}"
        if resource.is_spot:
            return f"EC2 instance {resource.resource_id} is a spot instance"
        return None

    @staticmethod
    def _autoscaling_groups(resources: List[Ec2Resource]) -> List[str]:
        names: List[str] = []
        for resource in resources:
            if resource.autoscaling_group and resource.autoscaling_group not in names:
                names.append(resource.autoscaling_group)
        return names

    async def _asg_call(self, operation: str, group_name: str) -> None:
        autoscaling = self.clients("autoscaling")
        try:
            await asyncio.to_thread(getattr(autoscaling, operation), AutoScalingGroupName=group_name)
        except ClientError as e:
            logger.error(f"{self.log_prefix}: autoscaling group {group_name} {operation} failed: {e}")

    async def start(self, resources: List[Ec2Resource], action: Action) -> None:
        ec2 = self.clients("ec2")
        for chunk in chunks(resources):
            logger.info(f"{self.log_prefix}: EC2 instances {to_limited_string(chunk)} will start")
            await asyncio.to_thread(ec2.start_instances, InstanceIds=[r.resource_id for r in chunk])

        groups = self._autoscaling_groups(resources)
        if groups:
            await asyncio.sleep(self.asg_resume_delay)
            for name in groups:
                logger.info(f"{self.log_prefix}: resuming ASG {name}")
                await self._asg_call("resume_processes", name)

    async def stop(self, resources: List[Ec2Resource], action: Action) -> None:
        for name in self._autoscaling_groups(resources):
            logger.info(f"{self.log_prefix}: suspending ASG {name}")
            await self._asg_call("suspend_processes", name)

        ec2 = self.clients("ec2")
        for chunk in chunks(resources):
            logger.info(f"{self.log_prefix}: EC2 instances {to_limited_string(chunk)} will stop")
            await asyncio.to_thread(ec2.stop_instances, InstanceIds=[r.resource_id for r in chunk])

    async def set_tag(self, resources: List[Resource], action: Action) -> None:
        await ec2_tagger.set_tag(self.clients("ec2"), resources, action)

    async def unset_tag(self, resources: List[Resource], action: Action) -> None:
        await ec2_tagger.unset_tag(self.clients("ec2"), resources, action)
