"""HTTP implementations of the catalog reader and identity directory ports."""

from __future__ import annotations

import asyncio
import threading
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING, Protocol
from urllib.parse import quote

import httpx
from aiolimiter import AsyncLimiter
from pydantic import ValidationError as PayloadValidationError

from sellerscope.adapters.http_resilience import ResilientClient
from sellerscope.domain.errors import DirectoryUnavailableError
from sellerscope.domain.ports import ProductRecord

from .schema import IdentityPayload, ProductPayload

if TYPE_CHECKING:
    from sellerscope.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


class ClientFactory(Protocol):
    def __call__(
        self, config: ResilienceConfig, *, limiter: AsyncLimiter | None = None
    ) -> ResilientClient: ...


class _DirectoryClient:
    def __init__(
        self,
        *,
        config: ResilienceConfig,
        client_factory: ClientFactory | None = None,
    ) -> None:
        if config.base_url is None:
            raise ValueError(f"{config.name} service requires a base_url")
        self._config = config
        self._client_factory: ClientFactory = client_factory or ResilientClient
        # only ever awaited on self._loop
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._loop_lock = threading.Lock()

    def close(self) -> None:
        """Stop the lookup loop; a later lookup starts a fresh one."""

        with self._loop_lock:
            loop, thread = self._loop, self._loop_thread
            self._loop = self._loop_thread = None
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()

    def _fetch(self, path: str) -> dict[str, object] | None:
        """GET ``path``; ``None`` for 404, the JSON object for 200.

        Callers may be on any thread. Every lookup of one client runs on the same
        background event loop, so the rate limiter is shared across threads.
        """

        future = asyncio.run_coroutine_threadsafe(self._fetch_async(path), self._event_loop())
        return future.result()

    def _event_loop(self) -> asyncio.AbstractEventLoop:
        with self._loop_lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever,
                    name=f"sellerscope-{self._config.name}-lookups",
                    daemon=True,
                )
                thread.start()
                self._loop, self._loop_thread = loop, thread
            return self._loop

    async def _fetch_async(self, path: str) -> dict[str, object] | None:
        try:
            async with self._client_factory(self._config, limiter=self._limiter) as client:
                response = await client.get(path)
        except httpx.HTTPError as exc:
            raise DirectoryUnavailableError(
                f"{self._config.name} service request for {path} failed: {exc}"
            ) from exc

        if response.status_code == HTTPStatus.NOT_FOUND:
            return None
        if response.status_code != HTTPStatus.OK:
            raise DirectoryUnavailableError(
                f"{self._config.name} service answered {response.status_code} for {path}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DirectoryUnavailableError(
                f"{self._config.name} service returned invalid JSON for {path}"
            ) from exc
        if not isinstance(payload, dict):
            raise DirectoryUnavailableError(
                f"Unexpected {self._config.name} response payload for {path}"
            )
        return payload


class HttpCatalogReader(_DirectoryClient):
    """Catalog reader talking to ``GET /products/{id}``."""

    def get_product(self, product_id: str) -> ProductRecord:
        payload = self._fetch(f"/products/{quote(product_id, safe='')}")
        if payload is None:
            return ProductRecord.missing(product_id)
        try:
            product = ProductPayload.model_validate(payload)
        except PayloadValidationError as exc:
            raise DirectoryUnavailableError(f"Malformed catalog record for {product_id}") from exc
        return ProductRecord(
            product_id=product.id,
            exists=True,
            owner_id=product.owner_id or None,
            active=product.active,
        )


class HttpIdentityDirectory(_DirectoryClient):
    """Identity directory talking to ``GET /identities/{id}``."""

    def identity_exists(self, identity_id: str) -> bool:
        return self._lookup(identity_id) is not None

    def is_active(self, identity_id: str) -> bool:
        identity = self._lookup(identity_id)
        return identity is not None and identity.active

    def _lookup(self, identity_id: str) -> IdentityPayload | None:
        payload = self._fetch(f"/identities/{quote(identity_id, safe='')}")
        if payload is None:
            log.debug("Identity %s not found", identity_id)
            return None
        try:
            return IdentityPayload.model_validate(payload)
        except PayloadValidationError as exc:
            raise DirectoryUnavailableError(f"Malformed identity record for {identity_id}") from exc
