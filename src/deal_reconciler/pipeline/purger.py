"""
Synthetic data purge: delete seeded rows, keep everything imported from the CRM.

Deletes run deals → merchant_accounts → employees, one prefix-filtered delete
per collection. A failed delete is recorded and the next collection is still
attempted; the remaining-row counts at the end show what actually happened.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from ..errors import StoreError
from ..models.records import Collection, RecordSource
from ..repository import ReconciliationRepository

logger = structlog.get_logger(__name__)

PURGE_ORDER = (
    Collection.DEALS,
    Collection.MERCHANT_ACCOUNTS,
    Collection.EMPLOYEES,
)


@dataclass
class PurgeResult:
    deleted: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    remaining: dict[str, int | None] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    @property
    def success(self) -> bool:
        return not self.failed and not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            'deleted': dict(self.deleted),
            'failed': dict(self.failed),
            'remaining': dict(self.remaining),
            'total_deleted': self.total_deleted,
            'errors': list(self.errors),
        }


class SyntheticDataPurger:
    """Removes rows tagged RecordSource.SYNTHETIC from every collection."""

    def __init__(self, repository: ReconciliationRepository):
        self.repository = repository

    async def run(self) -> PurgeResult:
        result = PurgeResult()

        for collection in PURGE_ORDER:
            prefix = collection.synthetic_prefix
            logger.info('purger.deleting', collection=collection.value, prefix=prefix)
            try:
                deleted = await self.repository.delete_by_source(
                    collection, RecordSource.SYNTHETIC
                )
            except StoreError as exc:
                logger.error(
                    'purger.delete_failed',
                    collection=collection.value,
                    error=exc.message,
                )
                result.failed[collection.value] = exc.message
                continue

            result.deleted[collection.value] = deleted
            logger.info('purger.deleted', collection=collection.value, count=deleted)

        for collection in PURGE_ORDER:
            try:
                result.remaining[collection.value] = await self.repository.count(collection)
            except StoreError as exc:
                logger.warning(
                    'purger.count_failed',
                    collection=collection.value,
                    error=exc.message,
                )
                result.remaining[collection.value] = None
                result.errors.append(f'Count of {collection.value} failed: {exc.message}')

        logger.info(
            'purger.complete',
            total_deleted=result.total_deleted,
            failed=list(result.failed),
        )
        return result
