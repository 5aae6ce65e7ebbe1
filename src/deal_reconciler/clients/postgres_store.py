"""
Postgres record store for the hosted deals database.

Uses SQLAlchemy 2.0 async engine + asyncpg for raw SQL execution. The store
is the only place that turns RowFilter predicates into SQL:
- Table and column names are checked against a whitelist before interpolation
- Every value is a bound parameter
- Prefix filters become LIKE with the prefix's wildcards escaped

Reads are retried on transient connection failures. Writes are not retried
here; the pipelines count a failed write and move on.
"""

from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import wrap_store_error
from ..models.records import Collection
from .store import RowFilter, FilterOp, check_columns

logger = structlog.get_logger(__name__)

_RPC_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, ConnectionError, TimeoutError)


def _sanitize_url(url: str) -> str:
    """Remove URL query params that asyncpg does not understand.

    Hosted pooler URLs include ``channel_binding=require`` and ``sslmode=require``
    which are libpq parameters. asyncpg rejects unknown connection params.
    SQLAlchemy's asyncpg dialect handles SSL via ``connect_args`` instead.
    """
    _STRIP_PARAMS = {'channel_binding', 'sslmode'}
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = parse_qs(parsed.query)
    filtered = {k: v for k, v in params.items() if k not in _STRIP_PARAMS}
    new_query = urlencode(filtered, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def _normalize_driver(url: str) -> str:
    """Force the asyncpg driver on postgres:// and postgresql:// URLs."""
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql+asyncpg://', 1)
    if url.startswith('postgresql://') and '+asyncpg' not in url:
        return url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return url


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so a prefix is matched literally."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def build_where(
    collection: Collection,
    filters: list[RowFilter] | None,
) -> tuple[str, dict[str, Any]]:
    """
    Render AND-ed filters as a WHERE clause with bound parameters.

    Returns:
        (clause, params) where clause is '' when there are no filters
    """
    if not filters:
        return '', {}

    check_columns(collection, [f.field for f in filters])

    clauses: list[str] = []
    params: dict[str, Any] = {}
    for i, f in enumerate(filters):
        name = f'p{i}'
        if f.op is FilterOp.PREFIX:
            clauses.append(f"{f.field} LIKE :{name} ESCAPE '\\'")
            params[name] = _escape_like(f.value) + '%'
        elif f.op is FilterOp.IS_NULL:
            clauses.append(f'{f.field} IS NULL')
        elif f.op is FilterOp.NOT_NULL:
            clauses.append(f'{f.field} IS NOT NULL')
        elif f.op is FilterOp.EQ:
            clauses.append(f'{f.field} = :{name}')
            params[name] = f.value
        elif f.op is FilterOp.GT:
            clauses.append(f'{f.field} > :{name}')
            params[name] = f.value
        else:
            raise ValueError(f'Unsupported filter op: {f.op}')

    return ' WHERE ' + ' AND '.join(clauses), params


def build_select(
    collection: Collection,
    filters: list[RowFilter] | None = None,
    columns: list[str] | None = None,
    order_by: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> tuple[str, dict[str, Any]]:
    """Render a SELECT statement and its parameters."""
    if columns:
        check_columns(collection, columns)
        column_sql = ', '.join(columns)
    else:
        column_sql = '*'

    where, params = build_where(collection, filters)
    sql = f'SELECT {column_sql} FROM {collection.value}{where}'

    if order_by:
        check_columns(collection, [order_by])
        sql += f' ORDER BY {order_by}'
    if limit is not None:
        sql += ' LIMIT :_limit'
        params['_limit'] = limit
    if offset:
        sql += ' OFFSET :_offset'
        params['_offset'] = offset

    return sql, params


class PostgresRecordStore:
    """
    Async record store over the hosted Postgres database.

    Uses SQLAlchemy 2.0 async engine with asyncpg for raw SQL execution.
    A single instance is created per run and passed to every component.
    """

    def __init__(
        self,
        database_url: str | None = None,
        pool_size: int = 2,
        ssl: str | bool | None = 'require',
    ):
        """
        Initialize with a hosted Postgres connection URL.

        Args:
            database_url: Postgres connection URL. 'postgres://' and
                          'postgresql://' URLs are converted to use asyncpg.
            pool_size: Connection pool size. Runs are sequential, so small.
            ssl: asyncpg ssl argument; None disables it (local databases).
        """
        self._engine: AsyncEngine | None = None
        self._database_url = database_url
        self._pool_size = pool_size
        self._ssl = ssl

    async def connect(self, database_url: str | None = None) -> None:
        """
        Create the async engine. Idempotent: no-op if already connected.

        Args:
            database_url: Override the URL from __init__.
        """
        if self._engine is not None:
            return

        url = database_url or self._database_url
        if not url:
            raise ValueError('database_url is required')

        url = _normalize_driver(_sanitize_url(url))

        connect_args: dict[str, Any] = {
            # Pooler (PgBouncer) in transaction mode rejects prepared statements.
            'prepared_statement_cache_size': 0,
        }
        if self._ssl is not None:
            connect_args['ssl'] = self._ssl

        self._engine = create_async_engine(
            url,
            pool_size=self._pool_size,
            max_overflow=0,
            pool_pre_ping=True,
            pool_timeout=30,
            connect_args=connect_args,
        )
        logger.info('postgres_store.connected')

    async def close(self) -> None:
        """Dispose of the engine and connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info('postgres_store.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('PostgresRecordStore not connected, call connect() first')
        return self._engine

    async def verify_connectivity(self) -> bool:
        """Return True if we can execute a simple query."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text('SELECT 1'))
            return True
        except Exception:
            logger.exception('postgres_store.connectivity_check_failed')
            return False

    # =========================================================================
    # Low-level execution
    # =========================================================================

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _fetch_all(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        async with self.engine.connect() as conn:
            result = await conn.execute(text(sql), params)
            return [dict(row) for row in result.mappings().all()]

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _fetch_scalar(self, sql: str, params: dict[str, Any]) -> Any:
        async with self.engine.connect() as conn:
            result = await conn.execute(text(sql), params)
            return result.scalar()

    async def _execute_write(self, sql: str, params: dict[str, Any]) -> int:
        async with self.engine.begin() as conn:
            result = await conn.execute(text(sql), params)
            return result.rowcount

    # =========================================================================
    # Reads
    # =========================================================================

    async def select(
        self,
        collection: Collection,
        filters: list[RowFilter] | None = None,
        columns: list[str] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """SELECT rows matching all filters."""
        sql, params = build_select(collection, filters, columns, order_by, limit, offset)
        try:
            return await self._fetch_all(sql, params)
        except Exception as exc:
            raise wrap_store_error(
                exc, {'collection': collection.value, 'operation': 'select'}
            ) from exc

    async def count(
        self,
        collection: Collection,
        filters: list[RowFilter] | None = None,
    ) -> int:
        """Exact row count (SELECT COUNT(*)) for rows matching all filters."""
        where, params = build_where(collection, filters)
        sql = f'SELECT COUNT(*) FROM {collection.value}{where}'
        try:
            return int(await self._fetch_scalar(sql, params) or 0)
        except Exception as exc:
            raise wrap_store_error(
                exc, {'collection': collection.value, 'operation': 'count'}
            ) from exc

    async def get_by_id(
        self,
        collection: Collection,
        record_id: str,
        columns: list[str] | None = None,
    ) -> dict[str, Any] | None:
        """Point lookup by primary key. Returns None when no row matches."""
        rows = await self.select(
            collection,
            filters=[RowFilter.eq('id', record_id)],
            columns=columns,
            limit=1,
        )
        return rows[0] if rows else None

    async def rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        """
        Call a named database function and return its (single) result.

        JSON results returned as text are decoded.
        """
        if not _RPC_NAME.match(name):
            raise ValueError(f'Invalid function name: {name!r}')
        args = args or {}
        for key in args:
            if not _RPC_NAME.match(key):
                raise ValueError(f'Invalid argument name: {key!r}')

        arg_sql = ', '.join(f'{key} => :{key}' for key in args)
        sql = f'SELECT {name}({arg_sql})'
        try:
            value = await self._fetch_scalar(sql, dict(args))
        except Exception as exc:
            raise wrap_store_error(exc, {'rpc': name, 'operation': 'rpc'}) from exc

        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value

    # =========================================================================
    # Writes
    # =========================================================================

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: dict[str, Any],
    ) -> int:
        """
        UPDATE a single row by id.

        Returns:
            Number of matched rows (0 when the id does not exist)
        """
        if not fields:
            raise ValueError('update requires at least one field')
        check_columns(collection, list(fields))

        assignments = ', '.join(f'{col} = :{col}' for col in fields)
        sql = f'UPDATE {collection.value} SET {assignments} WHERE id = :_id'
        params = {**fields, '_id': record_id}
        try:
            matched = await self._execute_write(sql, params)
        except Exception as exc:
            raise wrap_store_error(
                exc,
                {'collection': collection.value, 'record_id': record_id, 'operation': 'update'},
                write=True,
            ) from exc

        logger.debug(
            'postgres_store.update',
            collection=collection.value,
            record_id=record_id,
            matched=matched,
        )
        return matched

    async def delete_where(
        self,
        collection: Collection,
        filters: list[RowFilter],
    ) -> int:
        """
        DELETE rows matching all filters.

        An empty filter list is refused so a table can never be wiped by accident.

        Returns:
            Number of deleted rows
        """
        if not filters:
            raise ValueError('delete_where requires at least one filter')
        where, params = build_where(collection, filters)
        sql = f'DELETE FROM {collection.value}{where}'
        try:
            deleted = await self._execute_write(sql, params)
        except Exception as exc:
            raise wrap_store_error(
                exc,
                {'collection': collection.value, 'operation': 'delete'},
                write=True,
            ) from exc

        logger.debug('postgres_store.delete', collection=collection.value, deleted=deleted)
        return deleted
