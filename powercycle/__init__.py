"""
powercycle - start, stop and tag cloud resources according to schedules.

Schedules come from resource tags or from centrally configured matchers;
policy plugins decide what each resource needs and drivers carry it out
in as few API calls as possible.
"""

__version__ = "0.1.0"
