"""Error taxonomy shared by every job."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ProviderError(PipelineError):
    """An external provider call did not produce a usable answer."""

    def __init__(self, message: str, *, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


class ProviderQuotaExceeded(ProviderError):
    """HTTP 429 or OVER_QUERY_LIMIT. Retry the same unit of work after a delay."""


class ProviderInvalidRequest(ProviderError):
    """Provider rejected the request (INVALID_REQUEST, REQUEST_DENIED, 4xx)."""


class NetworkFailure(ProviderError):
    """Transport error or 5xx response."""


class PersistenceFailure(PipelineError):
    """A single store write failed; only the current item is affected."""


class AssetFailure(PipelineError):
    """Download, decode, compose or write of an asset failed."""


class BudgetExhausted(PipelineError):
    """The provider call budget for this run is spent."""


class StoreUnavailable(PipelineError):
    """The canonical store could not be reached at startup."""
