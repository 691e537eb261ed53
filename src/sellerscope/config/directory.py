"""Catalog and identity service configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DIRECTORY_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class DirectoryConfig:
    """Holds HTTP settings for the catalog reader and identity directory."""

    catalog: ResilienceConfig
    identity: ResilienceConfig


def _resilience(name: str, base_url: str, token: str | None) -> ResilienceConfig:
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return ResilienceConfig(
        name=name,
        base_url=base_url.rstrip("/"),
        timeout_seconds=DIRECTORY_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=3),
        ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
        default_headers=headers,
    )


def get_directory_config() -> DirectoryConfig:
    values = require_env_vars(("CATALOG_BASE_URL", "IDENTITY_BASE_URL"))
    token = os.getenv("DIRECTORY_API_TOKEN")
    return DirectoryConfig(
        catalog=_resilience("catalog", values["CATALOG_BASE_URL"], token),
        identity=_resilience("identity", values["IDENTITY_BASE_URL"], token),
    )
