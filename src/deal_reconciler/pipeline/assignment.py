"""
Deterministic deal → account assignment.

Every deal at position i (0-based, deals ordered by id) is:
- left unassigned when i % 20 == 0 (a fixed ~5% unassigned rate)
- otherwise assigned round-robin to accounts[i % len(accounts)], with that
  account's owner copied onto the deal

Same ordered inputs always give the same plan, which is what makes the
assignment usable for reproducible fixtures and demo data.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

import structlog

from ..errors import (
    AssignmentError,
    BatchResult,
    NoAccountsAvailableError,
    StoreError,
)
from ..models.plan import AssignmentPlan, PlannedAssignment
from ..models.records import Collection, MerchantAccount
from ..repository import ReconciliationRepository

logger = structlog.get_logger(__name__)

UNASSIGNED_EVERY = 20
PROGRESS_EVERY = 50


def build_assignment_plan(
    accounts: Sequence[MerchantAccount],
    deal_ids: Sequence[str],
) -> AssignmentPlan:
    """
    Compute the assignment for every deal. Pure: touches no store.

    Args:
        accounts: Accounts in stable order
        deal_ids: Deal identifiers in stable order

    Returns:
        AssignmentPlan with exactly one entry per deal, in deal order

    Raises:
        NoAccountsAvailableError: When accounts is empty
    """
    if not accounts:
        raise NoAccountsAvailableError(
            'No merchant accounts available for assignment',
            context={'deal_count': len(deal_ids)},
        )

    entries: list[PlannedAssignment] = []
    for i, deal_id in enumerate(deal_ids):
        if i % UNASSIGNED_EVERY == 0:
            entries.append(PlannedAssignment(deal_id, None, None))
            continue
        account = accounts[i % len(accounts)]
        entries.append(
            PlannedAssignment(deal_id, account.id, account.account_owner_id)
        )
    return AssignmentPlan(entries=entries)


@dataclass
class AssignmentRunResult:
    """Outcome of one assignment run: the plan summary, write counters, and verification counts."""

    account_count: int = 0
    deal_count: int = 0
    plan: AssignmentPlan | None = None
    writes: BatchResult = field(default_factory=BatchResult)

    # Post-run verification
    deals_with_account: int | None = None
    deals_without_account: int | None = None

    started_at: datetime | None = None
    processing_time_ms: int | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors and self.writes.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            'account_count': self.account_count,
            'deal_count': self.deal_count,
            'plan': self.plan.summary() if self.plan else None,
            'writes': self.writes.to_dict(),
            'deals_with_account': self.deals_with_account,
            'deals_without_account': self.deals_without_account,
            'processing_time_ms': self.processing_time_ms,
            'errors': list(self.errors),
        }


class DealAssigner:
    """Loads accounts and deals, builds the plan, and applies it one deal at a time."""

    def __init__(self, repository: ReconciliationRepository):
        self.repository = repository

    async def load_inputs(self) -> tuple[list[MerchantAccount], list[str]]:
        """
        Fetch the ordered inputs. Both reads are prerequisites.

        Raises:
            AssignmentError: When either read fails
        """
        try:
            accounts = await self.repository.list_accounts()
        except StoreError as exc:
            raise AssignmentError(
                f'Error fetching accounts: {exc.message}', context=exc.context
            ) from exc
        logger.info('assignment.accounts_loaded', count=len(accounts))

        try:
            deal_ids = await self.repository.list_deal_ids()
        except StoreError as exc:
            raise AssignmentError(
                f'Error fetching deals: {exc.message}', context=exc.context
            ) from exc
        logger.info('assignment.deals_loaded', count=len(deal_ids))

        return accounts, deal_ids

    async def apply(self, plan: AssignmentPlan) -> BatchResult:
        """
        Write the plan, one update per deal, in plan order.

        A failed update is counted and the run continues with the next deal.
        """
        result = BatchResult()
        total = len(plan)

        for i, entry in enumerate(plan, 1):
            try:
                matched = await self.repository.set_deal_assignment(
                    entry.deal_id, entry.account_id, entry.account_owner_id
                )
            except StoreError as exc:
                logger.error(
                    'assignment.update_failed',
                    deal_id=entry.deal_id,
                    error=exc.message,
                )
                result.record_failure(entry.deal_id, exc.message)
                continue

            if matched == 0:
                # Deal deleted between load and write
                logger.warning('assignment.deal_vanished', deal_id=entry.deal_id)
                result.record_failure(entry.deal_id, 'deal not found')
                continue

            result.record_update()
            if i % PROGRESS_EVERY == 0:
                logger.info('assignment.progress', updated=i, total=total)

        return result

    async def run(self) -> AssignmentRunResult:
        """
        Full assignment run: load → plan → apply → verify.

        Input read failures and an empty account table end the run before any
        write and are reported on the result.
        """
        started_at = datetime.now(tz=timezone.utc)
        t0 = time.monotonic()
        result = AssignmentRunResult(started_at=started_at)

        try:
            accounts, deal_ids = await self.load_inputs()
            result.account_count = len(accounts)
            result.deal_count = len(deal_ids)
            plan = build_assignment_plan(accounts, deal_ids)
        except (AssignmentError, NoAccountsAvailableError) as exc:
            logger.error('assignment.aborted', error=exc.message)
            result.errors.append(exc.message)
            result.processing_time_ms = int((time.monotonic() - t0) * 1000)
            return result

        result.plan = plan
        logger.info('assignment.plan_built', **plan.summary())

        result.writes = await self.apply(plan)

        try:
            result.deals_with_account = await self.repository.count(
                Collection.DEALS, not_null=('account_id',)
            )
            result.deals_without_account = await self.repository.count(
                Collection.DEALS, is_null=('account_id',)
            )
        except StoreError as exc:
            logger.warning('assignment.verification_failed', error=exc.message)
            result.errors.append(f'Verification counts unavailable: {exc.message}')

        result.processing_time_ms = int((time.monotonic() - t0) * 1000)
        logger.info(
            'assignment.complete',
            updated=result.writes.updated,
            failed=result.writes.failed,
            deals_with_account=result.deals_with_account,
            deals_without_account=result.deals_without_account,
        )
        return result
