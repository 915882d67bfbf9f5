"""
One account's run: set up drivers and plugins, collect resources, let the
plugins decide, then let the drivers act.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic.alias_generators import to_camel

from .aws import ClientFactory
from .config import AccountConfig
from .drivers import DRIVERS, ActionGroup, Driver
from .plugins import PLUGINS, Plugin
from .resources import Resource

logger = logging.getLogger(__name__)


class AccountRevolver:
    """Runs the configured plugins and drivers against a single account."""

    def __init__(self, account: AccountConfig, clients: Optional[ClientFactory] = None):
        self.account = account
        self.clients = clients
        self.drivers: List[Driver] = []
        self.plugins: List[Plugin] = []
        self.resources: List[Resource] = []

    @property
    def label(self) -> str:
        return self.account.label

    async def initialise(self) -> None:
        """
        Instantiate and initialise active drivers and plugins.

        Raises:
            ConfigurationError: If a plugin's configuration can't be built
        """
        logger.info(f"{self.label}: initialising")

        for driver_config in self.account.drivers:
            driver_cls = DRIVERS.get(driver_config.name)
            if driver_cls is None:
                logger.warning(f"{self.label}: driver {driver_config.name} is not supported")
                continue
            if not driver_config.active:
                continue
            self.drivers.append(driver_cls(self.account, driver_config, self.clients))

        for key, plugin_cls in PLUGINS.items():
            plugin_set = getattr(self.account.plugins, key)
            if plugin_set is None or not plugin_set.active:
                continue
            name = to_camel(key)
            logger.info(f"{self.label}: configuring plugin {name}")
            for plugin_config in plugin_set.configs:
                self.plugins.append(plugin_cls(self.account, name, plugin_config))

        await asyncio.gather(
            *(plugin.initialise() for plugin in self.plugins),
            *(driver.initialise() for driver in self.drivers),
        )

    async def load_resources(self) -> List[Resource]:
        logger.info(f"{self.label}: loading resources")
        collected = await asyncio.gather(*(driver.collect() for driver in self.drivers))
        self.resources = [resource for batch in collected for resource in batch]
        return self.resources

    async def run_plugins(self, now: datetime) -> None:
        """Let every plugin register actions on the resources it applies to, in configuration order."""
        logger.info(f"{self.label}: plugins will process {len(self.resources)} resources")
        for plugin in self.plugins:
            for resource in self.resources:
                if plugin.is_applicable(resource):
                    await plugin.generate_actions(resource, now)

        for resource in self.resources:
            resource.metadata["actionNames"] = [action.what.value for action in resource.actions]

    async def run_actions(self) -> Dict[str, List[ActionGroup]]:
        logger.info(f"{self.label}: drivers will run actions")
        results = await asyncio.gather(*(
            driver.process_actions([r for r in self.resources if driver.recognise_resource(r)])
            for driver in self.drivers
        ))
        return {driver.name: groups for driver, groups in zip(self.drivers, results)}

    async def revolve(self, now: datetime) -> Dict[str, Any]:
        """
        Run the whole account. Failures are logged and reported, never raised.

        Returns:
            Summary with the account label, resource count, executed groups and any error
        """
        summary: Dict[str, Any] = {
            "account": self.label,
            "resources": 0,
            "groups": [],
            "error": None,
        }
        try:
            await self.initialise()
            await self.load_resources()
            await self.run_plugins(now)
            groups = await self.run_actions()
        except Exception as e:
            logger.exception(f"Error processing account {self.label}")
            summary["error"] = str(e)
            return summary

        summary["resources"] = len(self.resources)
        summary["groups"] = [
            {
                "driver": driver_name,
                "action": group.action.what.value,
                "resources": group.resource_ids,
                "outcome": group.outcome,
                "error": group.error,
            }
            for driver_name, driver_groups in groups.items()
            for group in driver_groups
        ]
        return summary
