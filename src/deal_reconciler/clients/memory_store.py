"""
In-memory record store with the same filter semantics as the Postgres store.

Used for offline dry runs and as the store in behaviour tests. Write failures
can be injected per identifier to exercise best-effort batch handling.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

from ..errors import StoreQueryError, StoreWriteError
from ..models.records import Collection
from .store import RowFilter, check_columns


class InMemoryRecordStore:
    """Dict-backed RecordStore. Rows are plain dicts keyed by their 'id'."""

    def __init__(
        self,
        deals: list[dict[str, Any]] | None = None,
        accounts: list[dict[str, Any]] | None = None,
        employees: list[dict[str, Any]] | None = None,
        rpc_handlers: dict[str, Callable[..., Any]] | None = None,
    ):
        self._tables: dict[Collection, dict[str, dict[str, Any]]] = {
            Collection.DEALS: {},
            Collection.MERCHANT_ACCOUNTS: {},
            Collection.EMPLOYEES: {},
        }
        for collection, rows in (
            (Collection.DEALS, deals),
            (Collection.MERCHANT_ACCOUNTS, accounts),
            (Collection.EMPLOYEES, employees),
        ):
            for row in rows or []:
                self.insert(collection, row)

        self._rpc_handlers = dict(rpc_handlers or {})
        self.failing_updates: set[str] = set()
        self.failing_deletes: set[Collection] = set()
        self.failing_reads: set[Collection] = set()
        self.update_calls: list[tuple[Collection, str, dict[str, Any]]] = []
        self.closed = False

    # =========================================================================
    # Test helpers
    # =========================================================================

    def insert(self, collection: Collection, row: dict[str, Any]) -> None:
        self._tables[collection][row['id']] = dict(row)

    def rows(self, collection: Collection) -> list[dict[str, Any]]:
        """Snapshot of every row in id order."""
        table = self._tables[collection]
        return [copy.deepcopy(table[key]) for key in sorted(table)]

    def row(self, collection: Collection, record_id: str) -> dict[str, Any] | None:
        found = self._tables[collection].get(record_id)
        return copy.deepcopy(found) if found is not None else None

    # =========================================================================
    # RecordStore surface
    # =========================================================================

    def _matching(
        self,
        collection: Collection,
        filters: list[RowFilter] | None,
    ) -> list[dict[str, Any]]:
        if collection in self.failing_reads:
            raise StoreQueryError(
                f'Injected read failure on {collection.value}',
                context={'collection': collection.value},
            )
        filters = filters or []
        check_columns(collection, [f.field for f in filters])
        return [
            row
            for row in self._tables[collection].values()
            if all(f.matches(row) for f in filters)
        ]

    async def select(
        self,
        collection: Collection,
        filters: list[RowFilter] | None = None,
        columns: list[str] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        rows = self._matching(collection, filters)
        if order_by:
            check_columns(collection, [order_by])
            # NULLs sort last, as in Postgres ascending order
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ''))
        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        if columns:
            check_columns(collection, columns)
            return [{c: row.get(c) for c in columns} for row in rows]
        return [dict(row) for row in rows]

    async def count(
        self,
        collection: Collection,
        filters: list[RowFilter] | None = None,
    ) -> int:
        return len(self._matching(collection, filters))

    async def get_by_id(
        self,
        collection: Collection,
        record_id: str,
        columns: list[str] | None = None,
    ) -> dict[str, Any] | None:
        rows = await self.select(
            collection,
            filters=[RowFilter.eq('id', record_id)],
            columns=columns,
            limit=1,
        )
        return rows[0] if rows else None

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: dict[str, Any],
    ) -> int:
        if not fields:
            raise ValueError('update requires at least one field')
        check_columns(collection, list(fields))
        self.update_calls.append((collection, record_id, dict(fields)))

        if record_id in self.failing_updates:
            raise StoreWriteError(
                f'Injected write failure for {record_id}',
                context={'collection': collection.value, 'record_id': record_id},
            )

        row = self._tables[collection].get(record_id)
        if row is None:
            return 0
        row.update(fields)
        return 1

    async def delete_where(
        self,
        collection: Collection,
        filters: list[RowFilter],
    ) -> int:
        if not filters:
            raise ValueError('delete_where requires at least one filter')
        if collection in self.failing_deletes:
            raise StoreWriteError(
                f'Injected delete failure on {collection.value}',
                context={'collection': collection.value},
            )
        doomed = [row['id'] for row in self._matching(collection, filters)]
        for record_id in doomed:
            del self._tables[collection][record_id]
        return len(doomed)

    async def rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        handler = self._rpc_handlers.get(name)
        if handler is None:
            raise StoreQueryError(
                f'function {name}() does not exist',
                context={'rpc': name},
            )
        return handler(**(args or {}))

    async def close(self) -> None:
        self.closed = True
