"""
Tests for the policy plugins.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from powercycle.actions import ActionKind
from powercycle.config import (
    AccountConfig,
    PowerCycleCentralConfig,
    PowerCycleConfig,
    Settings,
    ValidateTagsConfig,
)
from powercycle.errors import FilterConfigError
from powercycle.plugins import PowerCycleCentralPlugin, PowerCyclePlugin, ValidateTagsPlugin
from powercycle.resources import LocalResource

# a Wednesday
NOW = datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)


def make_account(**settings) -> AccountConfig:
    return AccountConfig(account_id="123456789012", settings=Settings(name="test", **settings))


def make_resource(tags=None, state="running", resource_type="ec2", launched=NOW - timedelta(days=1)) -> LocalResource:
    return LocalResource({
        "resourceId": "i-1",
        "resourceType": resource_type,
        "resourceState": state,
        "launchTimeUtc": launched.isoformat() if launched else None,
        "tags": tags or {},
    })


def summary(resource):
    """(kind, reason or tags) for each registered action."""
    result = []
    for action in resource.actions:
        detail = getattr(action, "tags", None)
        result.append((action.what, detail if detail is not None else action.reason))
    return result


def run_plugin(plugin, resource, now=NOW):
    return asyncio.run(plugin.generate_actions(resource, now))


class TestPowerCyclePlugin:
    """Test the schedule tag plugin."""

    @pytest.fixture
    def plugin(self):
        return PowerCyclePlugin(make_account(), "powercycle", PowerCycleConfig())

    def test_missing_tag(self, plugin):
        """Test a resource without a schedule tag."""
        resource = run_plugin(plugin, make_resource())
        assert summary(resource) == [(ActionKind.SET_TAG, {"WarningSchedule": "Tag Schedule is missing"})]

    def test_start_stopped_resource(self, plugin):
        """Test starting a stopped resource."""
        resource = run_plugin(plugin, make_resource({"Schedule": "24x7"}, state="stopped"))
        assert summary(resource) == [
            (ActionKind.START, "Availability 24x7"),
            (ActionKind.SET_TAG, {"ReasonSchedule": "Availability 24x7"}),
        ]

    def test_start_running_resource_has_no_reason_tag(self, plugin):
        """Test no reason tag for a running resource."""
        resource = run_plugin(plugin, make_resource({"Schedule": "24x7"}))
        assert summary(resource) == [(ActionKind.START, "Availability 24x7")]

    def test_stop_running_resource(self, plugin):
        """Test stopping a running resource."""
        resource = run_plugin(plugin, make_resource({"Schedule": "0x7"}))
        assert summary(resource) == [
            (ActionKind.STOP, "Availability 0x7"),
            (ActionKind.SET_TAG, {"ReasonSchedule": "Availability 0x7"}),
        ]

    def test_unparseable(self, plugin):
        """Test an unreadable schedule tag."""
        resource = run_plugin(plugin, make_resource({"Schedule": "when I feel like it"}))
        assert summary(resource) == [(
            ActionKind.SET_TAG,
            {"WarningSchedule": "Tag when I feel like it is invalid, both start and stop specification are unreadable"},
        )]

    def test_override(self, plugin):
        """Test the override schedule."""
        resource = run_plugin(plugin, make_resource({"Schedule": "Override"}))
        assert summary(resource) == [(ActionKind.NOOP, "Availability override")]

    def test_custom_tag_name(self):
        """Test a custom schedule tag name."""
        plugin = PowerCyclePlugin(make_account(), "powercycle", PowerCycleConfig(availabilityTag="Availability"))
        resource = run_plugin(plugin, make_resource({"Schedule": "24x7"}))
        assert summary(resource) == [(ActionKind.SET_TAG, {"WarningAvailability": "Tag Availability is missing"})]

    def test_timezone_tag(self, plugin):
        """Test the resource timezone tag."""
        # 10:00 UTC is 21:00 in Sydney
        schedule = "Start=08:00;Stop=18:00"
        in_utc = run_plugin(plugin, make_resource({"Schedule": schedule}))
        in_sydney = run_plugin(plugin, make_resource({"Schedule": schedule, "Timezone": "Australia/Sydney"}))
        assert in_utc.actions[0].what == ActionKind.START
        assert in_sydney.actions[0].what == ActionKind.STOP
        assert "Wed 21:00 +11" in in_sydney.actions[0].reason

    def test_account_timezone(self):
        """Test the account timezone."""
        plugin = PowerCyclePlugin(make_account(timezone="Australia/Sydney"), "powercycle", PowerCycleConfig())
        resource = run_plugin(plugin, make_resource({"Schedule": "Start=08:00;Stop=18:00"}))
        assert resource.actions[0].what == ActionKind.STOP

    def test_applicable_resources(self, plugin):
        """Test which resources the plugin handles."""
        assert plugin.is_applicable(make_resource(resource_type="ec2"))
        assert plugin.is_applicable(make_resource(resource_type="local"))
        assert not plugin.is_applicable(make_resource(resource_type="ebs"))


class TestPowerCycleCentralPlugin:
    """Test the central matcher plugin."""

    def make_plugin(self, **overrides):
        config = {
            "availabilityTagPriority": 0,
            "predefinedSchedules": {"office": "Start=08:00;Stop=18:00"},
            "matchers": [
                {"name": "everything else", "filter": {"bool": True}, "schedule": "0x7", "priority": 1},
                {"name": "dev office", "filter": {"tag": "Environment|iequals|dev"}, "schedule": "office", "priority": 5},
            ],
        }
        config.update(overrides)
        plugin = PowerCycleCentralPlugin(make_account(), "powercycleCentral", PowerCycleCentralConfig(**config))
        asyncio.run(plugin.initialise())
        return plugin

    def test_initialise_resolves_and_sorts(self):
        """Test predefined schedules and matcher order."""
        plugin = self.make_plugin()
        assert [(m.name, m.schedule) for m in plugin.matchers] == [
            ("dev office", "Start=08:00;Stop=18:00"),
            ("everything else", "0x7"),
        ]

    def test_highest_priority_match(self):
        """Test the highest priority match."""
        resource = run_plugin(self.make_plugin(), make_resource({"Environment": "Dev"}, state="stopped"))
        assert summary(resource) == [(
            ActionKind.START,
            "[dev office]: It's Wed 10:00 +0, availability is from 8:00 till 18:00 all week",
        )]
        assert resource.metadata["highestMatch"] == "dev office (Start=08:00;Stop=18:00)"

    def test_fallback_match(self):
        """Test a low priority fallback matcher."""
        resource = run_plugin(self.make_plugin(), make_resource({"Environment": "prod"}))
        assert summary(resource) == [(ActionKind.STOP, "[everything else]: Availability 0x7")]

    def test_tag_overrides_when_priority_allows(self):
        """Test the schedule tag overriding matchers."""
        plugin = self.make_plugin(availabilityTagPriority=5)
        resource = run_plugin(plugin, make_resource({"Environment": "dev", "Schedule": "24x7"}))
        assert summary(resource) == [(ActionKind.START, "[Tag:Schedule]: Availability 24x7")]
        assert resource.metadata["highestMatch"] == "Tag:Schedule (24x7)"

    def test_tag_ignored_with_lower_priority(self):
        """Test ignoring a lower priority schedule tag."""
        resource = run_plugin(self.make_plugin(), make_resource({"Environment": "prod", "Schedule": "24x7"}))
        assert resource.actions[0].what == ActionKind.STOP

    def test_no_match(self):
        """Test a resource no matcher covers."""
        plugin = self.make_plugin(matchers=[{"name": "none", "filter": {"bool": False}, "schedule": "24x7"}])
        resource = run_plugin(plugin, make_resource())
        assert resource.actions == []
        assert "highestMatch" not in resource.metadata

    def test_pretend_matcher(self):
        """Test that a pretend matcher marks its actions."""
        plugin = self.make_plugin(matchers=[{"name": "trial", "filter": {"bool": True}, "schedule": "0x7", "pretend": True}])
        resource = run_plugin(plugin, make_resource())
        assert resource.actions[0].pretend

    def test_invalid_schedule_excluded(self, caplog):
        """Test excluding a matcher with an unreadable schedule."""
        plugin = self.make_plugin(matchers=[
            {"name": "broken", "filter": {"bool": True}, "schedule": "sometimes", "priority": 100},
            {"name": "fallback", "filter": {"bool": True}, "schedule": "0x7"},
        ])
        assert [m.name for m in plugin.matchers] == ["fallback"]
        assert 'invalid schedules "sometimes"' in caplog.text

        resource = run_plugin(plugin, make_resource())
        assert summary(resource) == [(ActionKind.STOP, "[fallback]: Availability 0x7")]

    def test_unparseable_tag_schedule_warns(self):
        """Test the warning for an unreadable tag schedule."""
        plugin = self.make_plugin(availabilityTagPriority=10)
        resource = run_plugin(plugin, make_resource({"Schedule": "sometimes"}))
        assert resource.actions[0].what == ActionKind.SET_TAG
        assert list(resource.actions[0].tags) == ["WarningSchedule"]

    def test_bad_filter(self):
        """Test rejecting a bad filter."""
        with pytest.raises(FilterConfigError):
            self.make_plugin(matchers=[{"name": "bad", "filter": {"colour": "blue"}, "schedule": "0x7"}])

    def test_barrier_tolerance(self):
        """Test the configured barrier tolerance."""
        matchers = [{"name": "evening", "filter": {"bool": True}, "schedule": "Stop=09:40"}]
        default = run_plugin(self.make_plugin(matchers=matchers), make_resource())
        wider = run_plugin(self.make_plugin(matchers=matchers, barrierToleranceMinutes=30), make_resource())
        assert default.actions[0].what == ActionKind.NOOP
        assert wider.actions[0].what == ActionKind.STOP


class TestValidateTagsPlugin:
    """Test the tag validation plugin."""

    def make_plugin(self, **config):
        return ValidateTagsPlugin(make_account(), "validateTags", ValidateTagsConfig(**config))

    def test_missing_and_present(self):
        """Test missing and present tags."""
        plugin = self.make_plugin(tag="Owner,CostCenter")
        resource = run_plugin(plugin, make_resource({"CostCenter": "CC-1"}))
        assert summary(resource) == [
            (ActionKind.SET_TAG, {"WarningOwner": "Tag Owner is missing"}),
            (ActionKind.UNSET_TAG, {"WarningCostCenter": ""}),
        ]

    def test_warnings_merge(self):
        """Test merging several warnings."""
        plugin = self.make_plugin(tag=["Owner", "CostCenter"])
        resource = run_plugin(plugin, make_resource())
        assert summary(resource) == [(
            ActionKind.SET_TAG,
            {"WarningOwner": "Tag Owner is missing", "WarningCostCenter": "Tag CostCenter is missing"},
        )]

    def test_regex_mismatch(self):
        """Test a value failing the pattern."""
        plugin = self.make_plugin(tag="CostCenter", match="^CC-\\d+$")
        resource = run_plugin(plugin, make_resource({"CostCenter": "marketing"}))
        assert summary(resource) == [
            (ActionKind.SET_TAG, {"WarningCostCenter": "Tag CostCenter doesn't match regex /^CC-\\d+$/"}),
        ]

    def test_regex_match_clears_warning(self):
        """Test a matching value clearing the warning."""
        plugin = self.make_plugin(tag="CostCenter", match="^CC-\\d+$")
        resource = run_plugin(plugin, make_resource({"CostCenter": "CC-42"}))
        assert summary(resource) == [(ActionKind.UNSET_TAG, {"WarningCostCenter": ""})]

    def test_stop_old_resource(self):
        """Test stopping a resource past the grace period."""
        plugin = self.make_plugin(tag="Owner", tag_missing=["warn", "stop"])
        resource = run_plugin(plugin, make_resource(launched=NOW - timedelta(hours=2)))
        assert [a.what for a in resource.actions] == [ActionKind.SET_TAG, ActionKind.STOP]

    def test_new_resource_not_stopped(self):
        """Test sparing a newly launched resource."""
        plugin = self.make_plugin(tag="Owner", tagMissing=["stop"])
        resource = run_plugin(plugin, make_resource(launched=NOW - timedelta(minutes=10)))
        assert summary(resource) == [(
            ActionKind.NOOP,
            "ec2 i-1 would've been stopped because tag Owner is missing but it was created less than 30 minutes ago",
        )]

    def test_unknown_action(self, caplog):
        """Test rejecting an unknown action."""
        plugin = self.make_plugin(tag="Owner", tagMissing=["explode"])
        resource = run_plugin(plugin, make_resource())
        assert resource.actions == []
        assert "action explode is not supported" in caplog.text
