"""
Reporting and diagnostics over the deal store.

Provides:
- Deal distributions by owner, division, category and stage (bounded sample)
- The dashboard aggregation RPC, parsed into typed counts
- Ownership coverage of externally-sourced records, with a trace of one
  deal → account → owner chain showing which link (if any) is broken
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from ..errors import StoreError
from ..models.records import Collection, RecordSource
from ..repository import ReconciliationRepository

logger = structlog.get_logger(__name__)

DEFAULT_SAMPLE_LIMIT = 10000
DASHBOARD_RPC = 'get_deal_aggregations'
UNKNOWN = 'Unknown'
UNASSIGNED = 'Unassigned'


# =============================================================================
# Distribution Report
# =============================================================================


@dataclass
class DealDistribution:
    """Counts over a bounded sample of deals."""

    sample_size: int = 0
    by_owner: Counter = field(default_factory=Counter)
    by_division: Counter = field(default_factory=Counter)
    by_category: Counter = field(default_factory=Counter)
    by_stage: Counter = field(default_factory=Counter)
    category_by_division: dict[str, Counter] = field(default_factory=dict)
    owner_names: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def owner_label(self, owner_id: str) -> str:
        """Human-readable owner name, falling back to the raw id."""
        if owner_id == UNASSIGNED:
            return owner_id
        return self.owner_names.get(owner_id) or owner_id

    def to_dict(self) -> dict[str, Any]:
        return {
            'sample_size': self.sample_size,
            'by_owner': {self.owner_label(k): v for k, v in self.by_owner.most_common()},
            'by_division': dict(self.by_division.most_common()),
            'by_category': dict(self.by_category.most_common()),
            'by_stage': dict(self.by_stage.most_common()),
            'category_by_division': {
                division: dict(counts.most_common())
                for division, counts in self.category_by_division.items()
            },
            'errors': list(self.errors),
        }


def summarize_rows(rows: list[dict[str, Any]]) -> DealDistribution:
    """Build a distribution from raw deal rows. Missing values count as 'Unknown'."""
    dist = DealDistribution(sample_size=len(rows))
    for row in rows:
        division = row.get('division') or UNKNOWN
        category = row.get('category') or UNKNOWN
        dist.by_owner[row.get('account_owner_id') or UNASSIGNED] += 1
        dist.by_division[division] += 1
        dist.by_category[category] += 1
        dist.by_stage[row.get('campaign_stage') or UNKNOWN] += 1
        dist.category_by_division.setdefault(division, Counter())[category] += 1
    return dist


# =============================================================================
# Dashboard Aggregations (RPC)
# =============================================================================


class _AggregateModel(BaseModel):
    """Payload model where a JSON null (e.g. json_agg over no rows) means the field default."""

    @field_validator('*', mode='before')
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class CategoryCount(_AggregateModel):
    name: str = UNKNOWN
    count: int = 0


class DivisionAggregate(_AggregateModel):
    division: str = UNKNOWN
    total: int = 0
    categories: list[CategoryCount] = Field(default_factory=list)


class StageCounts(_AggregateModel):
    draft: int = 0
    won: int = 0
    live: int = 0
    lost: int = 0


class DashboardAggregations(_AggregateModel):
    """Typed view of the get_deal_aggregations() payload."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    total: int = 0
    by_division: list[DivisionAggregate] = Field(default_factory=list, alias='byDivision')
    by_stage: StageCounts = Field(default_factory=StageCounts, alias='byStage')
    last_updated: datetime | None = Field(default=None, alias='lastUpdated')


@dataclass
class DashboardReport:
    """Aggregations as a run result. aggregations is None when the call failed."""

    aggregations: DashboardAggregations | None = None
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Ownership Coverage
# =============================================================================


class TraceStatus(str, Enum):
    OK = 'ok'
    ACCOUNT_MISSING = 'account_missing'
    ACCOUNT_HAS_NO_OWNER = 'account_has_no_owner'
    OWNER_MISSING = 'owner_missing'
    NO_LINKED_DEAL = 'no_linked_deal'


@dataclass
class OwnershipTrace:
    status: TraceStatus
    deal_id: str | None = None
    account_id: str | None = None
    account_name: str | None = None
    owner_id: str | None = None
    owner_name: str | None = None
    deal_owner_matches: bool | None = None


def _pct(part: int, whole: int) -> float:
    return round(part / (whole or 1) * 100, 1)


@dataclass
class CoverageReport:
    """Owner coverage of externally-sourced deals and accounts."""

    total_deals: int = 0
    deals_with_account: int = 0
    deals_with_owner: int = 0
    total_accounts: int = 0
    accounts_with_owner: int = 0
    total_employees: int = 0
    trace: OwnershipTrace | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def account_pct(self) -> float:
        return _pct(self.deals_with_account, self.total_deals)

    @property
    def owner_pct(self) -> float:
        return _pct(self.deals_with_owner, self.total_deals)

    @property
    def account_owner_pct(self) -> float:
        return _pct(self.accounts_with_owner, self.total_accounts)


class ReportingDiagnostics:
    """Read-only reports for operational visibility."""

    def __init__(
        self,
        repository: ReconciliationRepository,
        sample_limit: int = DEFAULT_SAMPLE_LIMIT,
    ):
        self.repository = repository
        self.sample_limit = sample_limit

    async def distribution(self) -> DealDistribution:
        """
        Count deals by owner, division, category and stage over a bounded sample.

        A failed sample read yields an empty distribution carrying the error.
        """
        try:
            rows = await self.repository.deal_field_sample(
                ['account_owner_id', 'division', 'category', 'campaign_stage'],
                limit=self.sample_limit,
            )
        except StoreError as exc:
            logger.error('reporting.sample_failed', error=exc.message)
            return DealDistribution(errors=[f'Deal sample failed: {exc.message}'])

        dist = summarize_rows(rows)
        try:
            dist.owner_names = await self.repository.employee_names()
        except StoreError as exc:
            # Raw owner ids are still a usable report
            logger.warning('reporting.owner_names_unavailable', error=exc.message)

        logger.info(
            'reporting.distribution_complete',
            sample_size=dist.sample_size,
            divisions=len(dist.by_division),
            categories=len(dist.by_category),
        )
        return dist

    async def dashboard_aggregations(self) -> DashboardAggregations:
        """
        Call the dashboard aggregation function and parse its payload.

        Raises:
            StoreError: When the function is missing or fails
            ValidationError: When the payload has the wrong shape
        """
        payload = await self.repository.call_rpc(DASHBOARD_RPC)
        aggregations = DashboardAggregations.model_validate(payload or {})
        logger.info(
            'reporting.dashboard_aggregations',
            total=aggregations.total,
            divisions=len(aggregations.by_division),
        )
        return aggregations

    async def dashboard_report(self) -> DashboardReport:
        """dashboard_aggregations() with a failure recorded instead of raised."""
        try:
            return DashboardReport(aggregations=await self.dashboard_aggregations())
        except StoreError as exc:
            logger.error('reporting.dashboard_aggregations_failed', error=exc.message)
            return DashboardReport(errors=[f'Dashboard aggregations failed: {exc.message}'])
        except ValidationError as exc:
            count = exc.error_count()
            logger.error('reporting.dashboard_payload_invalid', error_count=count)
            return DashboardReport(
                errors=[f'Dashboard aggregations failed: malformed payload ({count} errors)']
            )

    async def ownership_coverage(self) -> CoverageReport:
        """Count owner coverage of external records and trace one linked deal."""
        report = CoverageReport()
        external = RecordSource.EXTERNAL
        count = self.repository.count

        try:
            report.total_deals = await count(Collection.DEALS, source=external)
            report.deals_with_account = await count(
                Collection.DEALS, source=external, not_null=('account_id',)
            )
            report.deals_with_owner = await count(
                Collection.DEALS, source=external, not_null=('account_owner_id',)
            )
            report.total_accounts = await count(Collection.MERCHANT_ACCOUNTS, source=external)
            report.accounts_with_owner = await count(
                Collection.MERCHANT_ACCOUNTS, source=external, not_null=('account_owner_id',)
            )
            report.total_employees = await count(Collection.EMPLOYEES, source=external)
        except StoreError as exc:
            logger.error('reporting.coverage_counts_failed', error=exc.message)
            report.errors.append(f'Coverage counts failed: {exc.message}')

        try:
            report.trace = await self.trace_one()
        except StoreError as exc:
            logger.error('reporting.trace_failed', error=exc.message)
            report.errors.append(f'Ownership trace failed: {exc.message}')

        return report

    async def trace_one(self) -> OwnershipTrace:
        """Follow one external deal → its account → the account's owner."""
        deals = await self.repository.sample_deals(
            source=RecordSource.EXTERNAL,
            has_account=True,
            limit=1,
            columns=['id', 'title', 'account_id', 'account_owner_id'],
        )
        if not deals:
            return OwnershipTrace(status=TraceStatus.NO_LINKED_DEAL)

        deal = deals[0]
        trace = OwnershipTrace(
            status=TraceStatus.ACCOUNT_MISSING,
            deal_id=deal.id,
            account_id=deal.account_id,
        )

        account = await self.repository.get_account(deal.account_id)
        if account is None:
            return trace
        trace.account_name = account.name
        trace.owner_id = account.account_owner_id
        trace.deal_owner_matches = deal.account_owner_id == account.account_owner_id

        if not account.account_owner_id:
            trace.status = TraceStatus.ACCOUNT_HAS_NO_OWNER
            return trace

        owner = await self.repository.get_employee(account.account_owner_id)
        if owner is None:
            trace.status = TraceStatus.OWNER_MISSING
            return trace

        trace.owner_name = owner.name
        trace.status = TraceStatus.OK
        return trace
