"""
Filter interface and the string comparison vocabulary shared by leaf filters.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from ..errors import FilterConfigError
from ..resources import Resource

COMPARE_MODES = ("equals", "iequals", "contains", "startswith", "endswith", "regexp")


class Filter(ABC):
    """A predicate over a resource. Built once per run, holds no per-resource state."""

    @abstractmethod
    def matches(self, resource: Resource, now: datetime) -> bool:
        """Return True if the resource matches this filter at the given time."""
        pass


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StringCompare:
    """
    Compare a resource value against a configured value.

    ``equals`` is exact, ``regexp`` is a case-sensitive search, the other modes
    ignore case. A missing value (None) never matches.
    """

    def __init__(self, mode: str, value: Any):
        if mode not in COMPARE_MODES:
            raise FilterConfigError(f"Unknown comparison {mode!r}, expected one of {', '.join(COMPARE_MODES)}")
        self.mode = mode
        self.value = _as_text(value)
        self._re: Optional[re.Pattern] = None
        if mode == "regexp":
            try:
                self._re = re.compile(self.value)
            except re.error as exc:
                raise FilterConfigError(f"Invalid regular expression {self.value!r}: {exc}") from exc

    @classmethod
    def from_string(cls, text: str) -> "StringCompare":
        """Parse ``value`` (implicit equals) or ``mode|value``."""
        head, sep, rest = text.partition("|")
        if sep and head.lower() in COMPARE_MODES:
            return cls(head.lower(), rest)
        return cls("equals", text)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "StringCompare":
        """Pick the comparison out of a dict such as ``{"contains": "prod"}`` or ``{"value": "x"}``."""
        if "value" in config:
            return cls("equals", config["value"])
        for mode in COMPARE_MODES:
            if mode in config:
                return cls(mode, config[mode])
        raise FilterConfigError(f"No comparison value in {config!r}")

    @classmethod
    def from_config(cls, config: Any) -> "StringCompare":
        if isinstance(config, dict):
            return cls.from_dict(config)
        if isinstance(config, str):
            return cls.from_string(config)
        return cls("equals", config)

    def compare(self, actual: Any) -> bool:
        if actual is None:
            return False
        text = _as_text(actual)
        if self.mode == "equals":
            return text == self.value
        if self.mode == "regexp":
            return self._re.search(text) is not None
        lowered, expected = text.lower(), self.value.lower()
        if self.mode == "iequals":
            return lowered == expected
        if self.mode == "contains":
            return expected in lowered
        if self.mode == "startswith":
            return lowered.startswith(expected)
        return lowered.endswith(expected)

    def __repr__(self) -> str:
        return f"{self.mode}({self.value!r})"
