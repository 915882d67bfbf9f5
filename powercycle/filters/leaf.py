"""
Filters comparing a single resource attribute.
"""

from datetime import datetime
from typing import Any

import jmespath
from jmespath.exceptions import JMESPathError

from ..errors import FilterConfigError
from ..resources import Resource
from .base import Filter, StringCompare


class AttributeFilter(Filter):
    """Compare one resource accessor against a configured value."""

    name = ""

    def __init__(self, config: Any):
        self.compare = StringCompare.from_config(config)

    def value_of(self, resource: Resource) -> Any:
        raise NotImplementedError

    def matches(self, resource: Resource, now: datetime) -> bool:
        return self.compare.compare(self.value_of(resource))

    def __repr__(self) -> str:
        return f"{self.name}:{self.compare!r}"


class IdFilter(AttributeFilter):
    name = "id"

    def value_of(self, resource: Resource) -> Any:
        return resource.resource_id


class RegionFilter(AttributeFilter):
    name = "region"

    def value_of(self, resource: Resource) -> Any:
        return resource.region


class StateFilter(AttributeFilter):
    name = "state"

    def value_of(self, resource: Resource) -> Any:
        return resource.resource_state


class TypeFilter(AttributeFilter):
    name = "type"

    def value_of(self, resource: Resource) -> Any:
        return resource.resource_type


class AccountIdFilter(AttributeFilter):
    name = "accountId"

    def value_of(self, resource: Resource) -> Any:
        return resource.account_id


class NameFilter(AttributeFilter):
    """Matches the ``Name`` tag."""
    name = "name"

    def value_of(self, resource: Resource) -> Any:
        return resource.tag("Name")


class TagFilter(Filter):
    """
    Match a tag value.

    Config is ``{"name": "CostCenter", "contains": "prod"}`` or the short form
    ``"CostCenter|prod"`` / ``"CostCenter|contains|prod"``.
    """

    def __init__(self, config: Any):
        if isinstance(config, str):
            tag_name, sep, rest = config.partition("|")
            if not sep:
                raise FilterConfigError(f"Tag filter {config!r} needs the form name|value")
            self.tag_name = tag_name
            self.compare = StringCompare.from_string(rest)
        elif isinstance(config, dict) and "name" in config:
            self.tag_name = config["name"]
            self.compare = StringCompare.from_dict(config)
        else:
            raise FilterConfigError(f"Tag filter needs a tag name: {config!r}")

    def matches(self, resource: Resource, now: datetime) -> bool:
        return self.compare.compare(resource.tag(self.tag_name))

    def __repr__(self) -> str:
        return f"tag[{self.tag_name}]:{self.compare!r}"


class ResourceFilter(Filter):
    """
    Match a JMESPath query against the raw provider document.

    Config is ``{"path": "Placement.AvailabilityZone", "regexp": "^ap-"}`` or
    ``"path|value"`` / ``"path|mode|value"``.
    """

    def __init__(self, config: Any):
        if isinstance(config, str):
            path, sep, rest = config.partition("|")
            if not sep:
                raise FilterConfigError(f"Resource filter {config!r} needs the form path|value")
            self.compare = StringCompare.from_string(rest)
        elif isinstance(config, dict) and "path" in config:
            path = config["path"]
            self.compare = StringCompare.from_dict(config)
        else:
            raise FilterConfigError(f"Resource filter needs a path: {config!r}")

        self.path = path
        try:
            self._expression = jmespath.compile(path)
        except JMESPathError as exc:
            raise FilterConfigError(f"Invalid JMESPath {path!r}: {exc}") from exc

    def matches(self, resource: Resource, now: datetime) -> bool:
        return self.compare.compare(self._expression.search(resource.raw))

    def __repr__(self) -> str:
        return f"resource[{self.path}]:{self.compare!r}"


class BoolFilter(Filter):
    """Always or never matches."""

    def __init__(self, config: Any):
        if isinstance(config, str):
            self.value = config.strip().lower() in ("true", "yes", "on", "1")
        else:
            self.value = bool(config)

    def matches(self, resource: Resource, now: datetime) -> bool:
        return self.value

    def __repr__(self) -> str:
        return f"bool:{self.value}"
