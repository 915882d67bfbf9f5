"""
Drivers collect resources and carry out the actions plugins ask for.
"""

from .base import ActionGroup, ActionHandler, Driver, to_limited_string
from .ec2 import Ec2Driver, Ec2Resource
from .local import LocalDriver

DRIVERS = {
    "ec2": Ec2Driver,
    "local": LocalDriver,
}

__all__ = [
    "ActionGroup",
    "ActionHandler",
    "Driver",
    "DRIVERS",
    "Ec2Driver",
    "Ec2Resource",
    "LocalDriver",
    "to_limited_string",
]
