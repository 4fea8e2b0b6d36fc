"""
Exception hierarchy for the dashboard.

Fetch-level errors are raised by the registry and news clients and caught
at the view boundary, where they become a generic user-facing error state.
"""


class DashboardError(Exception):
    """Base class for all dashboard errors."""


class FetchError(DashboardError):
    """Network, HTTP or payload error from an upstream service."""


class RegistryFetchError(FetchError):
    """A single project registry could not be read."""

    def __init__(self, registry: str, message: str):
        self.registry = registry
        super().__init__(f"{registry}: {message}")


class SourceFetchError(FetchError):
    """A single news source could not be read."""

    def __init__(self, source, message: str):
        self.source = source
        super().__init__(f"{getattr(source, 'value', source)}: {message}")


class RegistryUnavailableError(DashboardError):
    """Both the primary and the fallback registry failed."""


class NoArticlesError(DashboardError):
    """Every news source failed or returned nothing."""
