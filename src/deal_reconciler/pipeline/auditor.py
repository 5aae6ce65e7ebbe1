"""
Mismatch auditor: read-only check that sampled deals point at accounts that exist.

A deal whose account_id has no matching merchant_accounts row is the signature
of a windowed CRM import: the account query was capped by date range or row
count, while the deal query was not, so deals arrive referencing accounts that
never made it into the store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from ..errors import StoreError
from ..models.records import Deal, RecordSource
from ..repository import ReconciliationRepository

logger = structlog.get_logger(__name__)

DEFAULT_SAMPLE_SIZE = 3

WINDOWED_IMPORT_HYPOTHESIS = (
    'The CRM sync sets account_id on deals whose accounts were never imported. '
    'The account fetch is windowed (date filter and row cap) while the live deal '
    'fetch is not, so deals from older accounts reference accounts missing from the store.'
)


class ReferenceStatus(str, Enum):
    EXISTS = 'exists'
    NOT_FOUND = 'NOT FOUND'
    LOOKUP_FAILED = 'lookup failed'


@dataclass
class ReferenceCheck:
    """Existence check for one sampled deal's account reference."""

    deal_id: str
    title: str
    merchant: str | None
    account_id: str
    status: ReferenceStatus
    account_name: str | None = None
    error: str | None = None

    @property
    def exists(self) -> bool:
        return self.status is ReferenceStatus.EXISTS


@dataclass
class MismatchReport:
    """Samples with and without references, plus the per-reference verdicts."""

    unlinked_samples: list[Deal] = field(default_factory=list)
    checks: list[ReferenceCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    hypothesis: str = WINDOWED_IMPORT_HYPOTHESIS

    @property
    def missing(self) -> list[ReferenceCheck]:
        return [c for c in self.checks if c.status is ReferenceStatus.NOT_FOUND]

    @property
    def has_mismatch(self) -> bool:
        return bool(self.missing)

    def to_dict(self) -> dict[str, Any]:
        return {
            'unlinked_samples': [d.id for d in self.unlinked_samples],
            'checks': [
                {
                    'deal_id': c.deal_id,
                    'account_id': c.account_id,
                    'status': c.status.value,
                    'account_name': c.account_name,
                }
                for c in self.checks
            ],
            'missing_count': len(self.missing),
            'errors': list(self.errors),
        }


class MismatchAuditor:
    """Samples externally-sourced deals and verifies their account references."""

    def __init__(
        self,
        repository: ReconciliationRepository,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ):
        self.repository = repository
        self.sample_size = sample_size

    async def check_reference(self, deal: Deal) -> ReferenceCheck:
        """Point lookup of the deal's account."""
        check = ReferenceCheck(
            deal_id=deal.id,
            title=deal.title,
            merchant=deal.merchant,
            account_id=deal.account_id or '',
            status=ReferenceStatus.NOT_FOUND,
        )
        try:
            account = await self.repository.get_account(deal.account_id)
        except StoreError as exc:
            logger.warning(
                'auditor.account_lookup_failed',
                deal_id=deal.id,
                account_id=deal.account_id,
                error=exc.message,
            )
            check.status = ReferenceStatus.LOOKUP_FAILED
            check.error = exc.message
            return check

        if account is not None:
            check.status = ReferenceStatus.EXISTS
            check.account_name = account.name
        else:
            logger.warning(
                'auditor.account_not_found',
                deal_id=deal.id,
                account_id=deal.account_id,
            )
        return check

    async def run(self) -> MismatchReport:
        """
        Sample deals without and with an account reference and check each reference.

        A failed sample read is recorded and that step is skipped.
        """
        report = MismatchReport()

        try:
            report.unlinked_samples = await self.repository.sample_deals(
                source=RecordSource.EXTERNAL,
                has_account=False,
                limit=self.sample_size,
                columns=['id', 'title', 'merchant'],
            )
        except StoreError as exc:
            logger.error('auditor.unlinked_sample_failed', error=exc.message)
            report.errors.append(f'Sample of deals without account failed: {exc.message}')

        try:
            linked = await self.repository.sample_deals(
                source=RecordSource.EXTERNAL,
                has_account=True,
                limit=self.sample_size,
                columns=['id', 'title', 'merchant', 'account_id'],
            )
        except StoreError as exc:
            logger.error('auditor.linked_sample_failed', error=exc.message)
            report.errors.append(f'Sample of deals with account failed: {exc.message}')
            linked = []

        for deal in linked:
            report.checks.append(await self.check_reference(deal))

        logger.info(
            'auditor.complete',
            unlinked=len(report.unlinked_samples),
            checked=len(report.checks),
            missing=len(report.missing),
        )
        return report
