"""
Repository for the reconciler's reads and writes over the record store.

Provides typed methods for working with deals, merchant accounts and
employees, so pipelines never build filters or parse rows themselves.

Key design decisions:
- Provenance filters are built from the Collection's prefixes only
  (source_filter), never from ad hoc strings.
- Deal pages are fetched in id order; keyset pages (id > last seen) are the
  default, numeric offsets are still available.
- Write methods return the matched row count and let store errors propagate;
  the calling pipeline decides whether a failure is fatal.
"""

from typing import Any

from .clients.store import RecordStore, RowFilter
from .models.records import (
    Collection,
    Deal,
    Employee,
    EmployeeStatus,
    MerchantAccount,
    RecordSource,
)

DEAL_COLUMNS = [
    'id', 'title', 'merchant', 'category', 'division', 'campaign_stage',
    'account_id', 'account_owner_id',
]
ACCOUNT_COLUMNS = ['id', 'name', 'account_owner_id']
EMPLOYEE_COLUMNS = ['id', 'name', 'email', 'role', 'status']


def source_filter(collection: Collection, source: RecordSource) -> RowFilter:
    """Identifier-prefix filter selecting rows of one provenance."""
    return RowFilter.prefix('id', collection.prefix_for(source))


class ReconciliationRepository:
    """
    Typed access to the three collections used by the reconciliation pipeline.

    The store handle is injected so tests can pass an InMemoryRecordStore.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    # =========================================================================
    # Account Operations
    # =========================================================================

    async def list_accounts(
        self,
        source: RecordSource | None = None,
        limit: int | None = None,
    ) -> list[MerchantAccount]:
        """
        Load merchant accounts in stable id order.

        Args:
            source: Restrict to one provenance (None = all accounts)
            limit: Optional row cap

        Returns:
            Accounts ordered by id
        """
        filters = [source_filter(Collection.MERCHANT_ACCOUNTS, source)] if source else None
        rows = await self.store.select(
            Collection.MERCHANT_ACCOUNTS,
            filters=filters,
            columns=ACCOUNT_COLUMNS,
            order_by='id',
            limit=limit,
        )
        return [MerchantAccount.from_row(row) for row in rows]

    async def account_owner_map(self) -> dict[str, str | None]:
        """Single bulk read of every account into account_id → account_owner_id."""
        rows = await self.store.select(
            Collection.MERCHANT_ACCOUNTS,
            columns=['id', 'account_owner_id'],
        )
        return {row['id']: row.get('account_owner_id') for row in rows}

    async def get_account(self, account_id: str) -> MerchantAccount | None:
        row = await self.store.get_by_id(
            Collection.MERCHANT_ACCOUNTS, account_id, columns=ACCOUNT_COLUMNS
        )
        return MerchantAccount.from_row(row) if row else None

    # =========================================================================
    # Deal Operations
    # =========================================================================

    async def list_deal_ids(self) -> list[str]:
        """Every deal id in stable id order (the assignment engine's input)."""
        rows = await self.store.select(Collection.DEALS, columns=['id'], order_by='id')
        return [row['id'] for row in rows]

    async def fetch_linked_deals_page(
        self,
        limit: int,
        after_id: str | None = None,
        offset: int = 0,
    ) -> list[Deal]:
        """
        Fetch one page of deals that reference an account, ordered by id.

        Args:
            limit: Page size
            after_id: Keyset cursor; only ids strictly greater are returned
            offset: Numeric offset (used when paging by offset instead of keyset)

        Returns:
            Up to `limit` deals
        """
        filters = [RowFilter.not_null('account_id')]
        if after_id is not None:
            filters.append(RowFilter.gt('id', after_id))
        rows = await self.store.select(
            Collection.DEALS,
            filters=filters,
            columns=['id', 'account_id', 'account_owner_id'],
            order_by='id',
            limit=limit,
            offset=offset,
        )
        return [Deal.from_row(row) for row in rows]

    async def fetch_unlinked_owned_deals_page(
        self,
        limit: int,
        after_id: str | None = None,
    ) -> list[Deal]:
        """Fetch one keyset page of deals with no account_id but a non-null owner."""
        filters = [RowFilter.is_null('account_id'), RowFilter.not_null('account_owner_id')]
        if after_id is not None:
            filters.append(RowFilter.gt('id', after_id))
        rows = await self.store.select(
            Collection.DEALS,
            filters=filters,
            columns=['id', 'account_id', 'account_owner_id'],
            order_by='id',
            limit=limit,
        )
        return [Deal.from_row(row) for row in rows]

    async def sample_deals(
        self,
        source: RecordSource | None = None,
        has_account: bool | None = None,
        limit: int = 3,
        columns: list[str] | None = None,
    ) -> list[Deal]:
        """
        Bounded read of deals for diagnostics.

        Args:
            source: Restrict to one provenance
            has_account: True → account_id set, False → account_id null, None → either
            limit: Maximum rows returned
            columns: Columns to read (defaults to every deal column)
        """
        filters: list[RowFilter] = []
        if source is not None:
            filters.append(source_filter(Collection.DEALS, source))
        if has_account is True:
            filters.append(RowFilter.not_null('account_id'))
        elif has_account is False:
            filters.append(RowFilter.is_null('account_id'))

        rows = await self.store.select(
            Collection.DEALS,
            filters=filters or None,
            columns=columns or DEAL_COLUMNS,
            order_by='id',
            limit=limit,
        )
        return [Deal.from_row(row) for row in rows]

    async def set_deal_assignment(
        self,
        deal_id: str,
        account_id: str | None,
        account_owner_id: str | None,
    ) -> int:
        return await self.store.update(
            Collection.DEALS,
            deal_id,
            {'account_id': account_id, 'account_owner_id': account_owner_id},
        )

    async def set_deal_owner(self, deal_id: str, account_owner_id: str | None) -> int:
        return await self.store.update(
            Collection.DEALS, deal_id, {'account_owner_id': account_owner_id}
        )

    # =========================================================================
    # Employee Operations
    # =========================================================================

    async def get_employee(self, employee_id: str) -> Employee | None:
        row = await self.store.get_by_id(
            Collection.EMPLOYEES, employee_id, columns=EMPLOYEE_COLUMNS
        )
        return Employee.from_row(row) if row else None

    async def employee_names(self) -> dict[str, str]:
        """employee id → display name, for resolving owner ids in reports."""
        rows = await self.store.select(Collection.EMPLOYEES, columns=['id', 'name'])
        return {row['id']: row.get('name') or '' for row in rows}

    async def set_employee_status(self, employee_id: str, status: EmployeeStatus) -> int:
        return await self.store.update(
            Collection.EMPLOYEES, employee_id, {'status': status.value}
        )

    # =========================================================================
    # Counts and Bulk Deletes
    # =========================================================================

    async def count(
        self,
        collection: Collection,
        source: RecordSource | None = None,
        not_null: tuple[str, ...] = (),
        is_null: tuple[str, ...] = (),
    ) -> int:
        """
        Exact count with optional provenance and null/non-null filters.

        Args:
            collection: Collection to count
            source: Restrict to one provenance
            not_null: Columns that must be set
            is_null: Columns that must be null
        """
        filters: list[RowFilter] = []
        if source is not None:
            filters.append(source_filter(collection, source))
        filters.extend(RowFilter.not_null(col) for col in not_null)
        filters.extend(RowFilter.is_null(col) for col in is_null)
        return await self.store.count(collection, filters or None)

    async def delete_by_source(self, collection: Collection, source: RecordSource) -> int:
        """Delete every row of one provenance. Returns the affected row count."""
        return await self.store.delete_where(
            collection, [source_filter(collection, source)]
        )

    async def deal_field_sample(self, fields: list[str], limit: int) -> list[dict[str, Any]]:
        """Raw rows with only the given deal columns, for distribution reports."""
        return await self.store.select(Collection.DEALS, columns=fields, limit=limit)

    async def call_rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        return await self.store.rpc(name, args)
