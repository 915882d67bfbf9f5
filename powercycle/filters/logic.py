"""
Combinators over other filters.

Empty ``and``/``or`` lists never match, so an empty configuration can't select
every resource by accident.
"""

from datetime import datetime
from typing import List

from ..resources import Resource
from .base import Filter


class AndFilter(Filter):
    def __init__(self, elements: List[Filter]):
        self.elements = list(elements)

    def matches(self, resource: Resource, now: datetime) -> bool:
        if not self.elements:
            return False
        return all(f.matches(resource, now) for f in self.elements)

    def __repr__(self) -> str:
        return f"and{self.elements!r}"


class OrFilter(Filter):
    def __init__(self, elements: List[Filter]):
        self.elements = list(elements)

    def matches(self, resource: Resource, now: datetime) -> bool:
        return any(f.matches(resource, now) for f in self.elements)

    def __repr__(self) -> str:
        return f"or{self.elements!r}"


class NotFilter(Filter):
    def __init__(self, element: Filter):
        self.element = element

    def matches(self, resource: Resource, now: datetime) -> bool:
        return not self.element.matches(resource, now)

    def __repr__(self) -> str:
        return f"not({self.element!r})"
