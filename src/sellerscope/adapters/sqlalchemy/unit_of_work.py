"""SQLAlchemy-backed units of work, one engine per named order store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, Literal, TypeAlias, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from sellerscope.adapters.sqlalchemy.migrations import upgrade_head
from sellerscope.adapters.sqlalchemy.repositories import (
    SqlAlchemyAuditLedgerRepository,
    SqlAlchemyOrderStore,
)
from sellerscope.config.storage import ORIGIN_STORE, get_database_config
from sellerscope.domain.ports import RepositoryCollection, StoreRepositories

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from types import TracebackType

    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engines: dict[str, Engine] = field(default_factory=dict)
    _session_factories: dict[str, sessionmaker[Session]] = field(default_factory=dict)

    @property
    def engines(self) -> dict[str, Engine]:
        return dict(self._engines)

    def set_engines(self, engines: Mapping[str, Engine]) -> None:
        self._session_factories = {}
        self._engines = dict(engines)

    def session_factory(self, store: str) -> sessionmaker[Session]:
        if not self._engines:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call sellerscope.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        engine = self._engines.get(store)
        if engine is None:
            raise StartupError(f"No order store named {store!r} is configured")
        factory = self._session_factories.get(store)
        if factory is None:
            factory = sessionmaker(bind=engine, expire_on_commit=False)
            self._session_factories[store] = factory
        return factory


_STATE = _AdapterState()


def startup(
    *,
    engines: Mapping[str, Engine] | None = None,
    database_uris: Mapping[str, str] | None = None,
    force: bool = False,
) -> None:
    """Create (or adopt) one engine per store and migrate each to the latest schema.

    Without arguments the stores come from ``get_database_config()``: the origin
    plus every configured mirror.
    """

    if _STATE.engines and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved: dict[str, Engine] = dict(engines or {})
    if not resolved:
        uris = database_uris or get_database_config().stores
        resolved = {name: create_engine(uri, future=True) for name, uri in uris.items()}
    if ORIGIN_STORE not in resolved:
        raise StartupError(f"The {ORIGIN_STORE!r} store must be configured")

    for engine in resolved.values():
        upgrade_head(engine=engine)

    if _STATE.engines:
        shutdown()
    _STATE.set_engines(resolved)


def configured_engine(store: str = ORIGIN_STORE) -> Engine | None:
    """Return the engine currently managed for ``store`` (if any)."""

    return _STATE.engines.get(store)


def configured_stores() -> tuple[str, ...]:
    return tuple(_STATE.engines)


def mirror_stores() -> tuple[str, ...]:
    return tuple(name for name in _STATE.engines if name != ORIGIN_STORE)


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return bool(_STATE.engines)


def shutdown() -> None:
    """Dispose every managed engine and reset state (primarily for tests)."""

    for engine in _STATE.engines.values():
        engine.dispose()
    _STATE.set_engines({})


TRepositories = TypeVar("TRepositories", bound=RepositoryCollection)


class BaseSqlAlchemyUnitOfWork(ABC, Generic[TRepositories]):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self, store: str = ORIGIN_STORE) -> None:
        self.store = store
        self.session_factory: sessionmaker[Session] = _STATE.session_factory(store)
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyStoreUnitOfWork(BaseSqlAlchemyUnitOfWork[StoreRepositories]):
    """Unit of work over the orders and audit ledger of one store."""

    def _build_repositories(self, session: Session) -> StoreRepositories:
        return StoreRepositories(
            orders=SqlAlchemyOrderStore(session, store=self.store),
            audit=SqlAlchemyAuditLedgerRepository(session, store=self.store),
        )


StoreUnitOfWorkFactory: TypeAlias = "Callable[[], SqlAlchemyStoreUnitOfWork]"


def unit_of_work_factory(store: str = ORIGIN_STORE) -> StoreUnitOfWorkFactory:
    """Return a zero-argument factory producing units of work for ``store``."""

    def factory() -> SqlAlchemyStoreUnitOfWork:
        return SqlAlchemyStoreUnitOfWork(store)

    return factory


if TYPE_CHECKING:
    from sellerscope.domain.ports import StoreUnitOfWork

    _uow_check: StoreUnitOfWork = SqlAlchemyStoreUnitOfWork()
