"""Defaults for the attribution reconciliation jobs."""

from __future__ import annotations

from dataclasses import dataclass

from sellerscope.domain.model import SYSTEM_ACTOR

from .env import int_env_var, require_env_vars

DEFAULT_PAGE_SIZE = 200
DEFAULT_CONFLICT_RETRIES = 3


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    platform_fallback_owner_id: str
    page_size: int = DEFAULT_PAGE_SIZE
    max_conflict_retries: int = DEFAULT_CONFLICT_RETRIES
    actor: str = SYSTEM_ACTOR

    def __post_init__(self) -> None:
        if not self.platform_fallback_owner_id:
            raise ValueError("platform_fallback_owner_id must not be blank")
        if self.page_size < 1:
            raise ValueError("page_size must be positive")
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be non-negative")


def get_reconciliation_config() -> ReconciliationConfig:
    values = require_env_vars(("PLATFORM_FALLBACK_OWNER_ID",))
    return ReconciliationConfig(
        platform_fallback_owner_id=values["PLATFORM_FALLBACK_OWNER_ID"],
        page_size=int_env_var("RECONCILE_PAGE_SIZE", DEFAULT_PAGE_SIZE, minimum=1),
        max_conflict_retries=int_env_var("RECONCILE_CONFLICT_RETRIES", DEFAULT_CONFLICT_RETRIES),
    )
