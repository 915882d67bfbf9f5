"""Error types raised while setting up a run."""


class ConfigurationError(ValueError):
    """Raised when configuration values are invalid."""


class FilterConfigError(ConfigurationError):
    """Raised when a filter specification can't be turned into a filter."""
