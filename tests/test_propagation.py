"""
Tests for owner propagation from merchant accounts onto their deals.

Tests cover:
- Correct owner resolution, including dangling references
- Skip-if-equal writes and idempotence of a second run
- The denormalization invariant after a run
- Keyset and offset paging
- Per-deal write failures, page fetch failures, account fetch failures
- Final statistics and the coverage percentage
"""

import pytest

from conftest import make_deal

from deal_reconciler.errors import BatchResult
from deal_reconciler.models import Collection, Deal
from deal_reconciler.pipeline.propagation import (
    OwnerPropagator,
    PropagationResult,
    correct_owner,
)


OWNERS = {
    'sf-acc-001': 'sf-emp-001',
    'sf-acc-002': 'sf-emp-002',
    'sf-acc-003': None,
}


class TestCorrectOwner:
    """Test the owner a deal should carry."""

    def test_mapped_owner(self):
        deal = Deal(id='sf-deal-1', account_id='sf-acc-001')
        assert correct_owner(deal, OWNERS) == 'sf-emp-001'

    def test_account_without_owner(self):
        deal = Deal(id='sf-deal-1', account_id='sf-acc-003')
        assert correct_owner(deal, OWNERS) is None

    def test_dangling_reference_resolves_to_none(self):
        deal = Deal(id='sf-deal-1', account_id='sf-acc-999', account_owner_id='sf-emp-001')
        assert correct_owner(deal, OWNERS) is None

    def test_unlinked_deal(self):
        assert correct_owner(Deal(id='sf-deal-1'), OWNERS) is None


class TestPropagationResult:
    """Test derived statistics."""

    def test_coverage_one_decimal(self):
        result = PropagationResult(total_deals=3, deals_with_owner=1)
        assert result.coverage_pct == 33.3

    def test_coverage_zero_deals(self):
        result = PropagationResult(total_deals=0, deals_with_owner=0)
        assert result.coverage_pct == 0.0

    def test_coverage_unknown(self):
        assert PropagationResult().coverage_pct is None


class TestOwnerPropagator:
    """Test full propagation runs against the in-memory store."""

    def test_rejects_bad_batch_size(self, repository):
        with pytest.raises(ValueError):
            OwnerPropagator(repository, batch_size=0)

    def test_rejects_unknown_pagination(self, repository):
        with pytest.raises(ValueError):
            OwnerPropagator(repository, pagination='cursor')

    @pytest.mark.asyncio
    async def test_run_counts(self, repository):
        result = await OwnerPropagator(repository).run()

        assert result.success
        assert result.account_count == 4
        assert result.deals_scanned == 6
        assert result.dangling_references == 1
        assert result.writes.updated == 4
        assert result.writes.skipped == 2
        assert result.writes.failed == 0

    @pytest.mark.asyncio
    async def test_run_restores_denormalization_invariant(self, repository, store):
        store.insert(Collection.DEALS, make_deal('sf-deal-007', None, 'sf-emp-001'))

        await OwnerPropagator(repository).run()

        owners = {
            row['id']: row['account_owner_id']
            for row in store.rows(Collection.MERCHANT_ACCOUNTS)
        }
        for deal in store.rows(Collection.DEALS):
            assert deal['account_owner_id'] == owners.get(deal['account_id'])

    @pytest.mark.asyncio
    async def test_dangling_reference_owner_cleared(self, repository, store):
        await OwnerPropagator(repository).run()

        dangling = store.row(Collection.DEALS, 'sf-deal-004')
        assert dangling['account_id'] == 'sf-acc-999'
        assert dangling['account_owner_id'] is None

    @pytest.mark.asyncio
    async def test_only_differing_deals_are_written(self, repository, store):
        await OwnerPropagator(repository).run()

        written = sorted(record_id for _, record_id, _ in store.update_calls)
        assert written == ['sf-deal-001', 'sf-deal-003', 'sf-deal-004', 'sf-deal-006']

    @pytest.mark.asyncio
    async def test_second_run_writes_nothing(self, repository, store):
        propagator = OwnerPropagator(repository)
        await propagator.run()
        store.update_calls.clear()

        second = await propagator.run()

        assert second.writes.updated == 0
        assert second.writes.skipped == 6
        assert store.update_calls == []

    @pytest.mark.asyncio
    async def test_unlinked_deal_owner_cleared(self, repository, store):
        store.insert(Collection.DEALS, make_deal('sf-deal-007', None, 'sf-emp-001'))

        result = await OwnerPropagator(repository).run()

        assert store.row(Collection.DEALS, 'sf-deal-007')['account_owner_id'] is None
        assert result.unlinked_scanned == 1
        assert result.deals_scanned == 6
        assert result.writes.updated == 5

    @pytest.mark.asyncio
    async def test_unlinked_pass_is_idempotent(self, repository, store):
        store.insert(Collection.DEALS, make_deal('sf-deal-007', None, 'sf-emp-001'))
        store.insert(Collection.DEALS, make_deal('sf-deal-008', None, 'sf-emp-002'))
        propagator = OwnerPropagator(repository, batch_size=1)
        await propagator.run()
        store.update_calls.clear()

        second = await propagator.run()

        assert second.unlinked_scanned == 0
        assert store.update_calls == []

    @pytest.mark.asyncio
    async def test_unlinked_write_failure_is_counted(self, repository, store):
        store.insert(Collection.DEALS, make_deal('sf-deal-007', None, 'sf-emp-001'))
        store.insert(Collection.DEALS, make_deal('sf-deal-008', None, 'sf-emp-002'))
        store.failing_updates = {'sf-deal-007'}

        result = await OwnerPropagator(repository, batch_size=1).run()

        assert result.unlinked_scanned == 2
        assert result.writes.failures == ['sf-deal-007']
        assert store.row(Collection.DEALS, 'sf-deal-007')['account_owner_id'] == 'sf-emp-001'
        assert store.row(Collection.DEALS, 'sf-deal-008')['account_owner_id'] is None

    @pytest.mark.asyncio
    async def test_final_statistics(self, repository):
        result = await OwnerPropagator(repository).run()

        assert result.total_deals == 8
        assert result.deals_with_account == 6
        assert result.deals_with_owner == 4
        assert result.coverage_pct == 50.0

    @pytest.mark.asyncio
    async def test_keyset_paging(self, repository):
        result = await OwnerPropagator(repository, batch_size=2).run()

        assert result.pages == 3
        assert result.deals_scanned == 6
        assert result.writes.updated == 4

    @pytest.mark.asyncio
    async def test_offset_paging(self, repository):
        result = await OwnerPropagator(repository, batch_size=4, pagination='offset').run()

        assert result.pages == 2
        assert result.deals_scanned == 6
        assert result.writes.updated == 4
        assert result.writes.skipped == 2

    @pytest.mark.asyncio
    async def test_write_failure_is_counted_and_run_continues(self, repository, store):
        store.failing_updates = {'sf-deal-003'}

        result = await OwnerPropagator(repository, batch_size=2).run()

        assert result.writes.updated == 3
        assert result.writes.failed == 1
        assert result.writes.failures == ['sf-deal-003']
        assert not result.success
        assert store.row(Collection.DEALS, 'sf-deal-006')['account_owner_id'] is None

    @pytest.mark.asyncio
    async def test_account_fetch_failure_ends_run_before_writes(self, repository, store):
        store.failing_reads = {Collection.MERCHANT_ACCOUNTS}

        result = await OwnerPropagator(repository).run()

        assert result.errors[0].startswith('Error fetching accounts')
        assert result.deals_scanned == 0
        assert store.update_calls == []

    @pytest.mark.asyncio
    async def test_page_fetch_failure_stops_paging(self, repository, store):
        store.failing_reads = {Collection.DEALS}

        result = await OwnerPropagator(repository).run()

        assert result.pages == 0
        assert result.errors[0].startswith('Error fetching deals')
        assert result.total_deals is None
        assert result.coverage_pct is None

    @pytest.mark.asyncio
    async def test_process_page_skips_correct_deals(self, repository):
        deals = [
            Deal(id='sf-deal-002', account_id='sf-acc-002', account_owner_id='sf-emp-002'),
            Deal(id='sf-deal-006', account_id='sf-acc-003', account_owner_id=None),
        ]

        batch = await OwnerPropagator(repository).process_page(deals, OWNERS)

        assert batch == BatchResult(skipped=2)

    @pytest.mark.asyncio
    async def test_stage_timings_recorded(self, repository):
        result = await OwnerPropagator(repository).run()

        assert set(result.stage_timings) == {
            'load_accounts',
            'propagate',
            'clear_unlinked',
            'final_counts',
        }
