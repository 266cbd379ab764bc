"""Exception types raised by servicewatch."""


class ServiceWatchError(Exception):
    """Base class for all servicewatch errors."""


class InvalidScheduleError(ServiceWatchError, ValueError):
    """A schedule descriptor could not be parsed."""


class ProbeError(ServiceWatchError):
    """A probe could not obtain a result from its target."""


class RepositoryError(ServiceWatchError):
    """A persistence operation failed."""
