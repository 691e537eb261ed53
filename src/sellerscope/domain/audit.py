"""Read and append access to the attribution audit trail."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from sellerscope.domain.model import AuditLogEntry
    from sellerscope.domain.ports import UnitOfWorkFactory

DEFAULT_QUERY_LIMIT = 500


class AuditLedger:
    """Append-only ledger of attribution changes.

    Repairs write their entry inside the same unit of work as the order update
    (see ``Reconciler``); this service covers standalone appends and queries.
    """

    def __init__(self, *, unit_of_work_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = unit_of_work_factory

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        with self._uow_factory() as uow:
            stored = uow.repositories.audit.append(entry)
            uow.commit()
        return stored

    def query(
        self,
        *,
        order_id: str | None = None,
        actor: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = DEFAULT_QUERY_LIMIT,
    ) -> list[AuditLogEntry]:
        if since is not None and until is not None and since > until:
            raise ValueError("since must not be after until")
        with self._uow_factory() as uow:
            return uow.repositories.audit.query(
                order_id=order_id,
                actor=actor,
                since=since,
                until=until,
                limit=limit,
            )
