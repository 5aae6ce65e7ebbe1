"""
Tests for the in-memory record store and the repository over it.
"""

import pytest

from conftest import make_deal

from deal_reconciler.clients import InMemoryRecordStore, RecordStore, RowFilter
from deal_reconciler.errors import StoreQueryError, StoreWriteError
from deal_reconciler.models import Collection, EmployeeStatus, RecordSource
from deal_reconciler.repository import source_filter


class TestRowFilter:
    """Test predicate evaluation."""

    def test_prefix(self):
        f = RowFilter.prefix('id', 'sf-')
        assert f.matches({'id': 'sf-1'})
        assert not f.matches({'id': 'gen-1'})
        assert not f.matches({'id': None})

    def test_null_checks(self):
        assert RowFilter.is_null('account_id').matches({'account_id': None})
        assert RowFilter.is_null('account_id').matches({})
        assert RowFilter.not_null('account_id').matches({'account_id': 'sf-acc-1'})

    def test_eq_and_gt(self):
        assert RowFilter.eq('id', 'a').matches({'id': 'a'})
        assert RowFilter.gt('id', 'a').matches({'id': 'b'})
        assert not RowFilter.gt('id', 'b').matches({'id': 'b'})
        assert not RowFilter.gt('id', 'b').matches({'id': None})

    def test_source_filter(self):
        assert source_filter(Collection.EMPLOYEES, RecordSource.SYNTHETIC) == RowFilter.prefix(
            'id', 'emp-'
        )


class TestInMemoryRecordStore:
    """Test the dict-backed store."""

    def test_satisfies_protocol(self, store):
        assert isinstance(store, RecordStore)

    @pytest.mark.asyncio
    async def test_select_orders_limits_and_projects(self, store):
        rows = await store.select(
            Collection.DEALS,
            filters=[RowFilter.prefix('id', 'sf-')],
            columns=['id'],
            order_by='id',
            limit=2,
            offset=1,
        )

        assert rows == [{'id': 'sf-deal-002'}, {'id': 'sf-deal-003'}]

    @pytest.mark.asyncio
    async def test_unknown_column_rejected(self, store):
        with pytest.raises(ValueError):
            await store.select(Collection.DEALS, columns=['password'])

    @pytest.mark.asyncio
    async def test_count(self, store):
        assert await store.count(Collection.DEALS) == 8
        assert await store.count(Collection.DEALS, [RowFilter.is_null('account_id')]) == 2

    @pytest.mark.asyncio
    async def test_update_returns_matched_rows(self, store):
        assert await store.update(Collection.DEALS, 'sf-deal-005', {'title': 'New'}) == 1
        assert await store.update(Collection.DEALS, 'sf-deal-404', {'title': 'New'}) == 0
        assert store.row(Collection.DEALS, 'sf-deal-005')['title'] == 'New'

    @pytest.mark.asyncio
    async def test_injected_write_failure(self, store):
        store.failing_updates = {'sf-deal-001'}

        with pytest.raises(StoreWriteError):
            await store.update(Collection.DEALS, 'sf-deal-001', {'title': 'x'})

    @pytest.mark.asyncio
    async def test_delete_requires_filters(self, store):
        with pytest.raises(ValueError):
            await store.delete_where(Collection.DEALS, [])

    @pytest.mark.asyncio
    async def test_delete_where(self, store):
        deleted = await store.delete_where(Collection.DEALS, [RowFilter.prefix('id', 'gen-')])

        assert deleted == 2
        assert await store.count(Collection.DEALS) == 6

    @pytest.mark.asyncio
    async def test_unknown_rpc(self, store):
        with pytest.raises(StoreQueryError):
            await store.rpc('nope')

    @pytest.mark.asyncio
    async def test_rpc_passes_args(self):
        store = InMemoryRecordStore(rpc_handlers={'echo': lambda value: value})

        assert await store.rpc('echo', {'value': 7}) == 7

    @pytest.mark.asyncio
    async def test_close(self, store):
        await store.close()
        assert store.closed


class TestReconciliationRepository:
    """Test typed repository reads and writes."""

    @pytest.mark.asyncio
    async def test_list_accounts_in_id_order(self, repository):
        accounts = await repository.list_accounts()

        assert [a.id for a in accounts] == ['merchant-001', 'sf-acc-001', 'sf-acc-002', 'sf-acc-003']

    @pytest.mark.asyncio
    async def test_list_accounts_by_source(self, repository):
        accounts = await repository.list_accounts(source=RecordSource.SYNTHETIC)

        assert [a.id for a in accounts] == ['merchant-001']

    @pytest.mark.asyncio
    async def test_account_owner_map(self, repository):
        owners = await repository.account_owner_map()

        assert owners['sf-acc-001'] == 'sf-emp-001'
        assert owners['sf-acc-003'] is None
        assert len(owners) == 4

    @pytest.mark.asyncio
    async def test_linked_deals_keyset_page(self, repository):
        page = await repository.fetch_linked_deals_page(2, after_id='sf-deal-002')

        assert [d.id for d in page] == ['sf-deal-003', 'sf-deal-004']

    @pytest.mark.asyncio
    async def test_linked_deals_offset_page(self, repository):
        page = await repository.fetch_linked_deals_page(10, offset=4)

        assert [d.id for d in page] == ['sf-deal-004', 'sf-deal-006']

    @pytest.mark.asyncio
    async def test_sample_deals_without_account(self, repository):
        deals = await repository.sample_deals(has_account=False, limit=5)

        assert [d.id for d in deals] == ['gen-0002', 'sf-deal-005']

    @pytest.mark.asyncio
    async def test_set_employee_status(self, repository, store):
        matched = await repository.set_employee_status('emp-001', EmployeeStatus.PENDING)

        assert matched == 1
        assert store.row(Collection.EMPLOYEES, 'emp-001')['status'] == 'pending'

    @pytest.mark.asyncio
    async def test_count_with_source_and_nulls(self, repository):
        count = await repository.count(
            Collection.DEALS,
            source=RecordSource.EXTERNAL,
            not_null=('account_id',),
            is_null=('account_owner_id',),
        )

        assert count == 1

    @pytest.mark.asyncio
    async def test_delete_by_source(self, repository, store):
        store.insert(Collection.DEALS, make_deal('gen-0003'))

        assert await repository.delete_by_source(Collection.DEALS, RecordSource.SYNTHETIC) == 3
