"""
Filter engine: build filter trees from configuration and match resources.

A filter specification is a single-key mapping naming the filter kind::

    {"and": [{"type": "ec2"}, {"tag": "Environment|iequals|dev"}]}

A list value on a leaf filter is an implicit OR over its elements, and a list
at the top level is an implicit AND.
"""

from typing import Any, Callable, Dict

from ..errors import FilterConfigError
from .base import COMPARE_MODES, Filter, StringCompare
from .leaf import (
    AccountIdFilter,
    BoolFilter,
    IdFilter,
    NameFilter,
    RegionFilter,
    ResourceFilter,
    StateFilter,
    TagFilter,
    TypeFilter,
)
from .logic import AndFilter, NotFilter, OrFilter
from .time import MatchWindowFilter, UptimeFilter

# Leaf filters take their configuration value directly
LEAF_FILTERS: Dict[str, Callable[[Any], Filter]] = {
    "id": IdFilter,
    "region": RegionFilter,
    "state": StateFilter,
    "type": TypeFilter,
    "accountId": AccountIdFilter,
    "name": NameFilter,
    "tag": TagFilter,
    "resource": ResourceFilter,
    "bool": BoolFilter,
    "uptime": UptimeFilter,
    "matchWindow": MatchWindowFilter,
}

LOGIC_FILTERS = ("and", "or", "not")


def build_filter(spec: Any) -> Filter:
    """
    Build a filter tree from a configuration value.

    Args:
        spec: Filter specification (mapping, or list for an implicit AND)

    Returns:
        Filter ready to match resources

    Raises:
        FilterConfigError: If the specification names an unknown filter or is malformed
    """
    if isinstance(spec, Filter):
        return spec
    if isinstance(spec, list):
        return AndFilter([build_filter(elem) for elem in spec])
    if not isinstance(spec, dict) or len(spec) != 1:
        raise FilterConfigError(f"A filter must be a mapping with exactly one key, got {spec!r}")

    kind, config = next(iter(spec.items()))

    if kind in ("and", "or"):
        if not isinstance(config, list):
            raise FilterConfigError(f"Filter {kind!r} needs a list, got {config!r}")
        elements = [build_filter(elem) for elem in config]
        return AndFilter(elements) if kind == "and" else OrFilter(elements)

    if kind == "not":
        return NotFilter(build_filter(config))

    factory = LEAF_FILTERS.get(kind)
    if factory is None:
        raise FilterConfigError(
            f"Unknown filter {kind!r}, expected one of {', '.join(list(LEAF_FILTERS) + list(LOGIC_FILTERS))}"
        )

    if isinstance(config, list):
        return OrFilter([factory(elem) for elem in config])
    return factory(config)


__all__ = [
    "COMPARE_MODES",
    "Filter",
    "StringCompare",
    "AndFilter",
    "OrFilter",
    "NotFilter",
    "LEAF_FILTERS",
    "build_filter",
]
