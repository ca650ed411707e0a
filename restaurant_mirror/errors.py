"""Error hierarchy for the restaurant mirror.

Error layers:
- MirrorError: Base class for every error this package raises on purpose
- DomainError: Lookups that found nothing to return (404 / 503 responses)
- InfrastructureError: Network, parsing and storage failures (502 / 503 responses)

Query operations surface these through the error slot of a ``QueryResult``;
the HTTP layer maps them with ``map_mirror_error`` in app.py.
"""

from __future__ import annotations


class MirrorError(Exception):
    """Base class for all restaurant mirror errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors
# =============================================================================


class DomainError(MirrorError):
    """Base class for lookups that could not produce a result."""


class NotFound(DomainError):
    """No record matches the requested id."""


class NoCachedData(DomainError):
    """Offline and the local store holds no records."""


class OutOfScope(DomainError):
    """The requested URL is not served by the asset origin."""


# =============================================================================
# Infrastructure Errors
# =============================================================================


class InfrastructureError(MirrorError):
    """Base class for network and storage failures."""


class NetworkError(InfrastructureError):
    """Transport failure or non-success status from the remote endpoint."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(InfrastructureError):
    """Response body is not a valid restaurant collection."""


class StoreError(InfrastructureError):
    """Base class for local persistence failures."""


class StoreUnavailable(StoreError):
    """The persistence mechanism cannot be opened."""


class StoreCorrupt(StoreError):
    """Persisted data cannot be deserialized."""


class AssetInstallError(InfrastructureError):
    """At least one manifest asset could not be fetched during install."""

    def __init__(self, message: str, failed_urls: list[str] | None = None) -> None:
        super().__init__(message)
        self.failed_urls = failed_urls or []


class LifecycleError(InfrastructureError):
    """Asset proxy operation invoked out of install/activate order."""
