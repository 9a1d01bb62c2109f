"""Public interface for the Dynamics adapter."""

from __future__ import annotations

from .client import DynamicsAPIError, DynamicsAuthError, DynamicsFetcher
from .schema import ODataPage, TokenResponse

__all__ = [
    "DynamicsAPIError",
    "DynamicsAuthError",
    "DynamicsFetcher",
    "ODataPage",
    "TokenResponse",
]
