from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from sellerscope.adapters.checkpoints import JsonFileCheckpointStore
from sellerscope.adapters.sqlalchemy.unit_of_work import shutdown, startup, unit_of_work_factory
from sellerscope.app import Services
from sellerscope.config import ORIGIN_STORE, ReconciliationConfig
from tests.helpers.orders import PLATFORM_OWNER, FakeCatalog, FakeIdentityDirectory

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine

    from sellerscope.domain.ports import UnitOfWorkFactory

MIRROR_STORE = "mirror_a"


def _sqlite_engine(path: Path) -> Engine:
    return create_engine(f"sqlite+pysqlite:///{path}", future=True)


@pytest.fixture
def store_engines(tmp_path: Path) -> Iterator[dict[str, Engine]]:
    engines = {
        ORIGIN_STORE: _sqlite_engine(tmp_path / "origin.db"),
        MIRROR_STORE: _sqlite_engine(tmp_path / "mirror_a.db"),
    }
    startup(engines=engines, force=True)
    try:
        yield engines
    finally:
        shutdown()


@pytest.fixture
def origin_uow(store_engines: dict[str, Engine]) -> UnitOfWorkFactory:
    _ = store_engines
    return unit_of_work_factory(ORIGIN_STORE)


@pytest.fixture
def mirror_uow(store_engines: dict[str, Engine]) -> UnitOfWorkFactory:
    _ = store_engines
    return unit_of_work_factory(MIRROR_STORE)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog({"p-1": "seller-a", "p-2": "seller-b", "p-3": "seller-a"})


@pytest.fixture
def identities() -> FakeIdentityDirectory:
    return FakeIdentityDirectory({"seller-a": True, "seller-b": True, "seller-c": True})


@pytest.fixture
def services(
    origin_uow: UnitOfWorkFactory,
    mirror_uow: UnitOfWorkFactory,
    catalog: FakeCatalog,
    identities: FakeIdentityDirectory,
    tmp_path: Path,
) -> Services:
    return Services(
        origin=origin_uow,
        mirrors={MIRROR_STORE: mirror_uow},
        catalog=catalog,
        identities=identities,
        checkpoints=JsonFileCheckpointStore(tmp_path / "checkpoints.json"),
        reconciliation=ReconciliationConfig(platform_fallback_owner_id=PLATFORM_OWNER, page_size=2),
    )

