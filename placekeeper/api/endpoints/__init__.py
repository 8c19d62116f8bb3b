"""Expose API endpoint routers."""

from placekeeper.api.endpoints import jobs

__all__ = ["jobs"]
