"""
Configuration loading and validation.

Configuration files are YAML or JSON. Keys may be camelCase (as in the
examples) or snake_case; unknown keys are ignored.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Settings(ConfigModel):
    """Account settings; accounts override the defaults key by key."""
    name: str = ""
    region: Optional[str] = None
    timezone: str = "utc"
    timezone_tag: str = "Timezone"
    assume_role_arn: Optional[str] = None


class DriverConfig(ConfigModel):
    name: str
    active: bool = True
    pretend: bool = False
    resources_file: Optional[str] = None


class PowerCycleConfig(ConfigModel):
    availability_tag: str = "Schedule"


class MatcherConfig(ConfigModel):
    name: str
    filter: Any = None
    schedule: str
    priority: float = 0
    pretend: bool = False


class PowerCycleCentralConfig(ConfigModel):
    availability_tag: str = "Schedule"
    availability_tag_priority: float = 0
    barrier_tolerance_minutes: float = Field(default=15, gt=0)
    predefined_schedules: Dict[str, str] = Field(default_factory=dict)
    matchers: List[MatcherConfig] = Field(default_factory=list)


class ValidateTagsConfig(ConfigModel):
    tag: Union[str, List[str]]
    tag_missing: List[str] = Field(default_factory=lambda: ["warn"])
    match: Optional[str] = None
    tag_not_match: List[str] = Field(default_factory=lambda: ["warn"])

    @property
    def tags(self) -> List[str]:
        names = self.tag if isinstance(self.tag, list) else self.tag.split(",")
        return [n.strip() for n in names if n.strip()]


class PowerCyclePlugins(ConfigModel):
    active: bool = True
    configs: List[PowerCycleConfig] = Field(default_factory=lambda: [PowerCycleConfig()])


class PowerCycleCentralPlugins(ConfigModel):
    active: bool = True
    configs: List[PowerCycleCentralConfig] = Field(default_factory=list)


class ValidateTagsPlugins(ConfigModel):
    active: bool = True
    configs: List[ValidateTagsConfig] = Field(default_factory=list)


class PluginsConfig(ConfigModel):
    powercycle: Optional[PowerCyclePlugins] = None
    powercycle_central: Optional[PowerCycleCentralPlugins] = None
    validate_tags: Optional[ValidateTagsPlugins] = None


class Defaults(ConfigModel):
    settings: Settings = Field(default_factory=Settings)
    drivers: List[DriverConfig] = Field(default_factory=list)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)


class AccountEntry(ConfigModel):
    account_id: str
    settings: Settings = Field(default_factory=Settings)

    @field_validator("account_id", mode="before")
    @classmethod
    def _account_id_as_string(cls, value: Any) -> str:
        # YAML loads bare account numbers as integers
        if isinstance(value, int):
            return f"{value:012d}"
        return str(value)


class AccountsConfig(ConfigModel):
    include_list: List[AccountEntry] = Field(default_factory=list)
    exclude_list: List[AccountEntry] = Field(default_factory=list)


class RunConfig(ConfigModel):
    """Top-level configuration document."""
    defaults: Defaults = Field(default_factory=Defaults)
    accounts: AccountsConfig = Field(default_factory=AccountsConfig)


class AccountConfig(ConfigModel):
    """Everything one account run needs, with defaults already applied."""
    account_id: str
    settings: Settings
    drivers: List[DriverConfig] = Field(default_factory=list)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @property
    def label(self) -> str:
        return f"{self.settings.name}({self.account_id})"


def config_from_dict(data: Dict[str, Any]) -> RunConfig:
    """
    Validate a configuration mapping.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    try:
        return RunConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(path: Union[str, Path]) -> RunConfig:
    """
    Load and validate a YAML or JSON configuration file.

    Args:
        path: Path to the configuration file

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Unable to read configuration {config_path}: {e}") from e

    try:
        if config_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Unable to parse configuration {config_path}: {e}") from e

    logger.debug(f"Loaded configuration from {config_path}")
    return config_from_dict(data)


def resolve_accounts(config: RunConfig) -> List[AccountConfig]:
    """
    Build per-account configuration from the include list, minus the exclude list.

    Account settings override default settings key by key; drivers and plugins
    come from the defaults.
    """
    excluded = {entry.account_id for entry in config.accounts.exclude_list}
    base = config.defaults.settings.model_dump()

    accounts: List[AccountConfig] = []
    for entry in config.accounts.include_list:
        if entry.account_id in excluded:
            logger.info(f"Account {entry.account_id} is excluded")
            continue
        merged = {**base, **entry.settings.model_dump(exclude_unset=True)}
        accounts.append(AccountConfig(
            account_id=entry.account_id,
            settings=Settings(**merged),
            drivers=[d for d in config.defaults.drivers if d.active],
            plugins=config.defaults.plugins,
        ))
    return accounts
