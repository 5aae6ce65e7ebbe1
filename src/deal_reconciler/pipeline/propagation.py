"""
Ownership propagation: keep each deal's account_owner_id equal to its account's owner.

Flow:
1. One bulk read of accounts into account_id → account_owner_id
2. Page through deals with a non-null account_id, in id order
3. For each deal, the correct owner is the mapped owner, or None when the
   account does not exist (dangling reference)
4. Deals already holding the correct owner are skipped, so a second run
   after a clean first run writes nothing
5. Every other deal gets its own single-row update; a failed update is
   counted and the run carries on
6. Deals with no account_id that still carry an owner get the owner cleared

Paging is by keyset (id > last seen id) unless offset paging is requested.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import structlog

from ..errors import BatchResult, StoreError
from ..logging import PipelineTimer
from ..models.records import Collection, Deal
from ..repository import ReconciliationRepository

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 1000
PROGRESS_EVERY = 5000

PaginationMode = Literal['keyset', 'offset']


def correct_owner(deal: Deal, owner_by_account: dict[str, str | None]) -> str | None:
    """Owner the deal should carry. Dangling or missing references resolve to None."""
    if deal.account_id is None:
        return None
    return owner_by_account.get(deal.account_id)


@dataclass
class PropagationResult:
    """Outcome of one propagation run."""

    account_count: int = 0
    pages: int = 0
    deals_scanned: int = 0
    dangling_references: int = 0
    unlinked_scanned: int = 0
    writes: BatchResult = field(default_factory=BatchResult)

    # Final statistics
    total_deals: int | None = None
    deals_with_account: int | None = None
    deals_with_owner: int | None = None

    started_at: datetime | None = None
    processing_time_ms: int | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def coverage_pct(self) -> float | None:
        """Percent of all deals carrying an owner, one decimal. None when unknown."""
        if self.total_deals is None or self.deals_with_owner is None:
            return None
        if self.total_deals == 0:
            return 0.0
        return round(self.deals_with_owner / self.total_deals * 100, 1)

    @property
    def success(self) -> bool:
        return not self.errors and self.writes.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            'account_count': self.account_count,
            'pages': self.pages,
            'deals_scanned': self.deals_scanned,
            'dangling_references': self.dangling_references,
            'unlinked_scanned': self.unlinked_scanned,
            'writes': self.writes.to_dict(),
            'total_deals': self.total_deals,
            'deals_with_account': self.deals_with_account,
            'deals_with_owner': self.deals_with_owner,
            'coverage_pct': self.coverage_pct,
            'processing_time_ms': self.processing_time_ms,
            'errors': list(self.errors),
        }


class OwnerPropagator:
    """
    Recomputes the denormalized owner on every linked deal.

    Only deals whose stored owner differs from the recomputed one are written.
    """

    def __init__(
        self,
        repository: ReconciliationRepository,
        batch_size: int = DEFAULT_BATCH_SIZE,
        pagination: PaginationMode = 'keyset',
    ):
        if batch_size <= 0:
            raise ValueError('batch_size must be positive')
        if pagination not in ('keyset', 'offset'):
            raise ValueError(f'Unknown pagination mode: {pagination}')
        self.repository = repository
        self.batch_size = batch_size
        self.pagination = pagination

    async def process_page(
        self,
        deals: list[Deal],
        owner_by_account: dict[str, str | None],
    ) -> BatchResult:
        """Reconcile one page of deals. Every deal in the page is attempted."""
        batch = BatchResult()
        for deal in deals:
            owner = correct_owner(deal, owner_by_account)
            if deal.account_owner_id == owner:
                batch.record_skip()
                continue

            try:
                matched = await self.repository.set_deal_owner(deal.id, owner)
            except StoreError as exc:
                logger.error(
                    'propagation.update_failed',
                    deal_id=deal.id,
                    error=exc.message,
                )
                batch.record_failure(deal.id, exc.message)
                continue

            if matched == 0:
                logger.warning('propagation.deal_vanished', deal_id=deal.id)
                batch.record_failure(deal.id, 'deal not found')
                continue
            batch.record_update()

        return batch

    async def run(self) -> PropagationResult:
        """
        Full propagation run over every deal with an account reference, then
        over unlinked deals that still carry an owner.

        A failed account read ends the run before any write. A failed page
        read stops paging; the counters gathered so far are still reported.
        """
        started_at = datetime.now(tz=timezone.utc)
        t0 = time.monotonic()
        timer = PipelineTimer()
        result = PropagationResult(started_at=started_at)

        with timer.stage('load_accounts'):
            try:
                owner_by_account = await self.repository.account_owner_map()
            except StoreError as exc:
                logger.error('propagation.accounts_fetch_failed', error=exc.message)
                result.errors.append(f'Error fetching accounts: {exc.message}')
                result.stage_timings = timer.summary()['stages']
                result.processing_time_ms = int((time.monotonic() - t0) * 1000)
                return result

        result.account_count = len(owner_by_account)
        logger.info('propagation.accounts_loaded', count=result.account_count)

        with timer.stage('propagate'):
            await self._propagate(owner_by_account, result)

        with timer.stage('clear_unlinked'):
            await self._clear_unlinked(result)

        with timer.stage('final_counts'):
            await self._final_counts(result)

        result.stage_timings = timer.summary()['stages']
        result.processing_time_ms = int((time.monotonic() - t0) * 1000)
        logger.info(
            'propagation.complete',
            updated=result.writes.updated,
            skipped=result.writes.skipped,
            failed=result.writes.failed,
            coverage_pct=result.coverage_pct,
        )
        return result

    async def _propagate(
        self,
        owner_by_account: dict[str, str | None],
        result: PropagationResult,
    ) -> None:
        after_id: str | None = None
        offset = 0

        while True:
            try:
                if self.pagination == 'keyset':
                    page = await self.repository.fetch_linked_deals_page(
                        self.batch_size, after_id=after_id
                    )
                else:
                    page = await self.repository.fetch_linked_deals_page(
                        self.batch_size, offset=offset
                    )
            except StoreError as exc:
                position = after_id if self.pagination == 'keyset' else offset
                logger.error(
                    'propagation.page_fetch_failed',
                    position=position,
                    error=exc.message,
                )
                result.errors.append(f'Error fetching deals at {position}: {exc.message}')
                return

            if not page:
                return

            result.pages += 1
            result.deals_scanned += len(page)
            result.dangling_references += sum(
                1 for d in page if d.account_id not in owner_by_account
            )

            batch = await self.process_page(page, owner_by_account)
            result.writes.merge(batch)

            if batch.attempted:
                logger.info(
                    'propagation.batch_complete',
                    page=result.pages,
                    batch_updated=batch.updated,
                    batch_attempted=batch.attempted,
                    total_updated=result.writes.updated,
                )

            after_id = page[-1].id
            offset += self.batch_size
            if result.deals_scanned % PROGRESS_EVERY < len(page):
                logger.info('propagation.progress', scanned=result.deals_scanned)

    async def _clear_unlinked(self, result: PropagationResult) -> None:
        # Updated rows leave the filtered set, so only keyset paging is safe here
        after_id: str | None = None

        while True:
            try:
                page = await self.repository.fetch_unlinked_owned_deals_page(
                    self.batch_size, after_id=after_id
                )
            except StoreError as exc:
                logger.error(
                    'propagation.unlinked_fetch_failed',
                    position=after_id,
                    error=exc.message,
                )
                result.errors.append(f'Error fetching unlinked deals at {after_id}: {exc.message}')
                return

            if not page:
                return

            result.unlinked_scanned += len(page)
            batch = await self.process_page(page, {})
            result.writes.merge(batch)
            logger.info(
                'propagation.unlinked_cleared',
                batch_updated=batch.updated,
                batch_attempted=batch.attempted,
            )
            after_id = page[-1].id

    async def _final_counts(self, result: PropagationResult) -> None:
        try:
            result.total_deals = await self.repository.count(Collection.DEALS)
            result.deals_with_account = await self.repository.count(
                Collection.DEALS, not_null=('account_id',)
            )
            result.deals_with_owner = await self.repository.count(
                Collection.DEALS, not_null=('account_owner_id',)
            )
        except StoreError as exc:
            logger.warning('propagation.final_counts_failed', error=exc.message)
            result.errors.append(f'Final statistics unavailable: {exc.message}')
