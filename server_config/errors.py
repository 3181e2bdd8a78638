"""Exception types raised by server_config."""


class ServerConfigError(Exception):
    """Base class for all server_config errors."""


class CatalogReadError(ServerConfigError):
    """The package catalog could not be read."""


class SelectionError(ServerConfigError):
    """A category selection did not resolve to a category."""


class ConfigError(ServerConfigError):
    """The configuration file is unreadable or invalid."""
