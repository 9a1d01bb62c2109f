"""Dynamics 365 configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_AUTHORITY_URL = "https://login.microsoftonline.com"
DYNAMICS_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class DynamicsConfig:
    """Credentials and endpoints for the Dynamics OData API."""

    tenant_id: str
    client_id: str
    client_secret: str
    resource: str
    resilience: ResilienceConfig
    authority_url: str = DEFAULT_AUTHORITY_URL
    max_page_size: int | None = None

    @property
    def token_url(self) -> str:
        return f"{self.authority_url.rstrip('/')}/{self.tenant_id}/oauth2/token"

    def data_url(self, endpoint: str) -> str:
        # resource is configured with a trailing slash, e.g. https://org.operations.dynamics.com/
        base = self.resource if self.resource.endswith("/") else f"{self.resource}/"
        return f"{base}data/{endpoint.lstrip('/')}"


def get_dynamics_config(*, resilience: ResilienceConfig | None = None) -> DynamicsConfig:
    values = require_env_vars(
        (
            "DYNAMICS_TENANT_ID",
            "DYNAMICS_CLIENT_ID",
            "DYNAMICS_CLIENT_SECRET",
            "DYNAMICS_RESOURCE",
        )
    )
    return DynamicsConfig(
        tenant_id=values["DYNAMICS_TENANT_ID"],
        client_id=values["DYNAMICS_CLIENT_ID"],
        client_secret=values["DYNAMICS_CLIENT_SECRET"],
        resource=values["DYNAMICS_RESOURCE"],
        resilience=resilience
        or ResilienceConfig(
            name="dynamics",
            timeout_seconds=DYNAMICS_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers={"Accept": "application/json"},
        ),
        max_page_size=_read_max_page_size(),
    )


def _read_max_page_size() -> int | None:
    raw = os.getenv("DYNAMICS_MAX_PAGE_SIZE")
    if raw is None or not raw.strip():
        return None
    try:
        size = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid DYNAMICS_MAX_PAGE_SIZE: {raw}") from exc
    if size <= 0:
        raise ConfigurationError("DYNAMICS_MAX_PAGE_SIZE must be a positive integer")
    return size
