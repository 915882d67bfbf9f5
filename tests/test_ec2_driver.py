"""
Tests for the EC2 driver against stubbed AWS clients.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.stub import Stubber

from powercycle.actions import SetTagAction, StartAction, StopAction, UnsetTagAction
from powercycle.config import AccountConfig, DriverConfig, Settings
from powercycle.drivers import Ec2Driver, Ec2Resource
from powercycle.drivers.tags import chunks
from powercycle.resources import OTHER, RUNNING, STOPPED

LAUNCHED = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)


def make_instance(instance_id, state="running", tags=None, **kw):
    instance = {
        "InstanceId": instance_id,
        "State": {"Name": state},
        "LaunchTime": LAUNCHED,
        "Tags": [{"Key": k, "Value": v} for k, v in (tags or {}).items()],
    }
    instance.update(kw)
    return instance


def make_resource(instance_id, state="running", tags=None, **kw) -> Ec2Resource:
    return Ec2Resource(
        make_instance(instance_id, state, tags, **kw),
        f"arn:aws:ec2:ap-southeast-2:123456789012:instance/{instance_id}",
    )


@pytest.fixture
def ec2():
    client = boto3.client(
        "ec2",
        region_name="ap-southeast-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def autoscaling():
    client = MagicMock()
    client.get_paginator.return_value.paginate.return_value = [
        {"AutoScalingGroups": [{"AutoScalingGroupName": "web-asg", "Instances": [{"InstanceId": "i-asg"}]}]}
    ]
    return client


@pytest.fixture
def driver(ec2, autoscaling):
    client, _ = ec2
    clients = {"ec2": client, "autoscaling": autoscaling}
    account = AccountConfig(account_id="123456789012", settings=Settings(name="test", region="ap-southeast-2"))
    d = Ec2Driver(account, DriverConfig(name="ec2"), clients.__getitem__)
    d.asg_resume_delay = 0
    return d


class TestEc2Resource:
    """Test EC2 instance wrapping."""

    @pytest.mark.parametrize("state,expected", [
        ("pending", RUNNING),
        ("running", RUNNING),
        ("stopping", STOPPED),
        ("stopped", STOPPED),
        ("rebooting", OTHER),
    ])
    def test_state(self, state, expected):
        """Test state normalisation."""
        assert make_resource("i-1", state).resource_state == expected

    def test_accessors(self):
        """Test EC2 resource accessors."""
        resource = make_resource("i-1", tags={"Schedule": "24x7"}, InstanceLifecycle="spot")
        assert resource.resource_id == "i-1"
        assert resource.resource_type == "ec2"
        assert resource.account_id == "123456789012"
        assert resource.launch_time_utc == LAUNCHED
        assert resource.tag("Schedule") == "24x7"
        assert resource.is_spot
        assert resource.autoscaling_group is None


class TestCollect:
    """Test collecting EC2 instances."""

    def test_collect(self, driver, ec2):
        """Test paginated collection with Auto Scaling membership."""
        _, stubber = ec2
        stubber.add_response("describe_instances", {
            "Reservations": [
                {"Instances": [make_instance("i-run"), make_instance("i-gone", "terminated")]},
                {"Instances": [make_instance("i-asg"), make_instance("i-stop", "stopped")]},
            ]
        })

        resources = asyncio.run(driver.collect())

        assert [r.resource_id for r in resources] == ["i-run", "i-asg", "i-stop"]
        assert resources[1].autoscaling_group == "web-asg"
        assert resources[0].autoscaling_group is None
        assert resources[0].resource_arn == "arn:aws:ec2:ap-southeast-2:123456789012:instance/i-run"


class TestMasks:
    """Test EC2 start and stop masks."""

    def test_start_masks(self, driver):
        """Test start masking."""
        assert driver.mask_start(make_resource("i-1", "running"), StartAction("p"))
        assert driver.mask_start(make_resource("i-1", "stopped", InstanceLifecycle="spot"), StartAction("p"))
        assert driver.mask_start(make_resource("i-1", "stopped"), StartAction("p")) is None

    def test_stop_masks(self, driver):
        """Test stop masking."""
        assert driver.mask_stop(make_resource("i-1", "stopped"), StopAction("p"))
        assert driver.mask_stop(make_resource("i-1", "running", InstanceLifecycle="spot"), StopAction("p"))
        assert driver.mask_stop(make_resource("i-1", "running"), StopAction("p")) is None


class TestActions:
    """Test EC2 action execution."""

    def test_start_groups_instances(self, driver, ec2, autoscaling):
        """Test one start call for all unmasked instances."""
        _, stubber = ec2
        stubber.add_response("start_instances", {"StartingInstances": []}, {"InstanceIds": ["i-1", "i-asg"]})
        resources = [
            make_resource("i-1", "stopped"),
            make_resource("i-2", "running"),
            make_resource("i-asg", "stopped", AutoScalingGroupName="web-asg"),
            make_resource("i-spot", "stopped", InstanceLifecycle="spot"),
        ]
        for resource in resources:
            resource.add_action(StartAction("powercycle"))

        groups = asyncio.run(driver.process_actions(resources))

        assert [g.resource_ids for g in groups] == [["i-1", "i-asg"]]
        autoscaling.resume_processes.assert_called_once_with(AutoScalingGroupName="web-asg")

    def test_stop_suspends_asg_first(self, driver, ec2, autoscaling):
        """Test suspending Auto Scaling processes before a stop."""
        _, stubber = ec2
        stubber.add_response("stop_instances", {"StoppingInstances": []}, {"InstanceIds": ["i-asg"]})
        resource = make_resource("i-asg", "running", AutoScalingGroupName="web-asg")
        resource.add_action(StopAction("powercycle"))

        groups = asyncio.run(driver.process_actions([resource]))

        assert groups[0].outcome == "executed"
        autoscaling.suspend_processes.assert_called_once_with(AutoScalingGroupName="web-asg")

    def test_set_tag(self, driver, ec2):
        """Test tagging only untagged instances."""
        _, stubber = ec2
        stubber.add_response("create_tags", {}, {
            "Resources": ["i-1"],
            "Tags": [{"Key": "WarningSchedule", "Value": "Tag Schedule is missing"}],
        })
        tagged = make_resource("i-2", tags={"WarningSchedule": "Tag Schedule is missing"})
        untagged = make_resource("i-1")
        for resource in (untagged, tagged):
            resource.add_action(SetTagAction("powercycle", "WarningSchedule", "Tag Schedule is missing"))

        groups = asyncio.run(driver.process_actions([untagged, tagged]))

        assert [g.resource_ids for g in groups] == [["i-1"]]

    def test_unset_tag(self, driver, ec2):
        """Test removing tags only where present."""
        _, stubber = ec2
        stubber.add_response("delete_tags", {}, {"Resources": ["i-2"], "Tags": [{"Key": "WarningOwner"}]})
        untagged = make_resource("i-1")
        tagged = make_resource("i-2", tags={"WarningOwner": "Tag Owner is missing"})
        for resource in (untagged, tagged):
            resource.add_action(UnsetTagAction("validateTags", "WarningOwner"))

        asyncio.run(driver.process_actions([untagged, tagged]))

    def test_api_error_is_contained(self, driver, ec2):
        """Test that an API error fails only its group."""
        _, stubber = ec2
        stubber.add_client_error("stop_instances", "UnauthorizedOperation")
        resource = make_resource("i-1", "running")
        resource.add_action(StopAction("powercycle"))

        groups = asyncio.run(driver.process_actions([resource]))

        assert groups[0].outcome == "failed"


def test_chunks():
    """Test id chunking."""
    assert [len(c) for c in chunks(list(range(450)))] == [200, 200, 50]
    assert chunks([]) == []
