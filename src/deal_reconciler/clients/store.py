"""
Record store interface consumed by the reconciler.

The store is a hosted relational database reached through plain CRUD calls
plus named RPC functions. Two implementations exist:
- PostgresRecordStore: SQLAlchemy async engine against the hosted Postgres
- InMemoryRecordStore: dict-backed store with the same filter semantics

Filters are declarative (RowFilter) so both implementations interpret them
identically, and so the SQL layer can whitelist every column it interpolates.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ..models.records import Collection


class FilterOp(str, Enum):
    PREFIX = 'prefix'
    IS_NULL = 'is_null'
    NOT_NULL = 'not_null'
    EQ = 'eq'
    GT = 'gt'


@dataclass(frozen=True)
class RowFilter:
    """A single predicate on one column. Multiple filters are AND-ed."""

    field: str
    op: FilterOp
    value: Any = None

    @classmethod
    def prefix(cls, field: str, value: str) -> RowFilter:
        return cls(field, FilterOp.PREFIX, value)

    @classmethod
    def is_null(cls, field: str) -> RowFilter:
        return cls(field, FilterOp.IS_NULL)

    @classmethod
    def not_null(cls, field: str) -> RowFilter:
        return cls(field, FilterOp.NOT_NULL)

    @classmethod
    def eq(cls, field: str, value: Any) -> RowFilter:
        return cls(field, FilterOp.EQ, value)

    @classmethod
    def gt(cls, field: str, value: Any) -> RowFilter:
        return cls(field, FilterOp.GT, value)

    def matches(self, row: dict[str, Any]) -> bool:
        """Evaluate the predicate against an in-memory row."""
        current = row.get(self.field)
        if self.op is FilterOp.PREFIX:
            return isinstance(current, str) and current.startswith(self.value)
        if self.op is FilterOp.IS_NULL:
            return current is None
        if self.op is FilterOp.NOT_NULL:
            return current is not None
        if self.op is FilterOp.EQ:
            return current == self.value
        if self.op is FilterOp.GT:
            return current is not None and current > self.value
        raise ValueError(f'Unsupported filter op: {self.op}')


# Columns the reconciler is allowed to read, filter, order or write, per table.
COLUMNS: dict[Collection, frozenset[str]] = {
    Collection.DEALS: frozenset({
        'id', 'title', 'merchant', 'category', 'division', 'campaign_stage',
        'account_id', 'account_owner_id',
    }),
    Collection.MERCHANT_ACCOUNTS: frozenset({
        'id', 'name', 'account_owner_id',
    }),
    Collection.EMPLOYEES: frozenset({
        'id', 'name', 'email', 'role', 'status',
    }),
}


def check_columns(collection: Collection, columns: list[str] | tuple[str, ...]) -> None:
    """Raise ValueError for any column not known on the collection."""
    allowed = COLUMNS[collection]
    unknown = [c for c in columns if c not in allowed]
    if unknown:
        raise ValueError(f'Unknown column(s) for {collection.value}: {unknown}')


@runtime_checkable
class RecordStore(Protocol):
    """CRUD + count + RPC surface over the deals, merchant_accounts and employees tables."""

    async def select(
        self,
        collection: Collection,
        filters: list[RowFilter] | None = None,
        columns: list[str] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]: ...

    async def count(
        self,
        collection: Collection,
        filters: list[RowFilter] | None = None,
    ) -> int: ...

    async def get_by_id(
        self,
        collection: Collection,
        record_id: str,
        columns: list[str] | None = None,
    ) -> dict[str, Any] | None: ...

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: dict[str, Any],
    ) -> int: ...

    async def delete_where(
        self,
        collection: Collection,
        filters: list[RowFilter],
    ) -> int: ...

    async def rpc(self, name: str, args: dict[str, Any] | None = None) -> Any: ...

    async def close(self) -> None: ...
