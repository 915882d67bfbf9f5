"""
Policy plugins decide what should happen to each resource.
"""

from .base import Plugin
from .central import PowerCycleCentralPlugin
from .powercycle import PowerCyclePlugin
from .validate_tags import ValidateTagsPlugin

PLUGINS = {
    "powercycle": PowerCyclePlugin,
    "powercycle_central": PowerCycleCentralPlugin,
    "validate_tags": ValidateTagsPlugin,
}

__all__ = [
    "Plugin",
    "PLUGINS",
    "PowerCyclePlugin",
    "PowerCycleCentralPlugin",
    "ValidateTagsPlugin",
]
