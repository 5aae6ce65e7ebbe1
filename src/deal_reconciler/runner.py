"""
Standalone run bootstrap shared by every script in scripts/.

Each run:
1. Configures logging and checks configuration (missing store credentials
   abort before any data access, exit status 2)
2. Creates exactly one store client, checks it can be reached, and injects
   it into the component
3. Prints a human-readable summary of the component's result
4. Closes the store client

Exit status is 0 whenever the component ran to completion, partial failures
included, and 1 on an unhandled exception.
"""

import traceback
from typing import Awaitable, Callable, TypeVar
from uuid import uuid4

import structlog

from .clients.postgres_store import PostgresRecordStore
from .clients.store import RecordStore
from .config import config
from .errors import ConfigurationError, StoreConnectionError
from .logging import configure_logging, logging_context
from .pipeline.assignment import AssignmentRunResult, DealAssigner
from .pipeline.auditor import MismatchAuditor, MismatchReport
from .pipeline.propagation import OwnerPropagator, PropagationResult
from .pipeline.purger import PurgeResult, SyntheticDataPurger
from .pipeline.reporting import (
    CoverageReport,
    DashboardReport,
    DealDistribution,
    ReportingDiagnostics,
)
from .pipeline.visibility import OwnerVisibilityToggle, ToggleOutcome, ToggleResult
from .repository import ReconciliationRepository

logger = structlog.get_logger(__name__)

T = TypeVar('T')

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

RULE = '=' * 70


def _banner(title: str) -> None:
    print(RULE)
    print(title)
    print(RULE)


def _print_errors(errors: list[str]) -> None:
    if errors:
        print(f"\nErrors ({len(errors)}):")
        for error in errors:
            print(f"  - {error}")


def default_store() -> RecordStore:
    """
    Build the Postgres store from configuration.

    Raises:
        ConfigurationError: When required settings are missing
    """
    missing = config.validate()
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}",
            context={'missing': missing},
        )
    return PostgresRecordStore(config.DATABASE_URL, pool_size=config.DATABASE_POOL_SIZE)


async def run_component(
    name: str,
    work: Callable[[ReconciliationRepository], Awaitable[T]],
    render: Callable[[T], None],
    store_factory: Callable[[], RecordStore] = default_store,
) -> int:
    """
    Run one component against a freshly created store and print its result.

    Args:
        name: Component name (logged on every event of the run)
        work: Coroutine function taking the repository and returning a result
        render: Prints the result for a human
        store_factory: Creates the store client (tests pass an in-memory store)

    Returns:
        Process exit status
    """
    configure_logging()

    try:
        store = store_factory()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}")
        return EXIT_CONFIG_ERROR

    run_id = uuid4().hex[:12]
    try:
        with logging_context(run_id=run_id, component=name):
            connect = getattr(store, 'connect', None)
            if connect is not None:
                await connect()
            verify = getattr(store, 'verify_connectivity', None)
            if verify is not None and not await verify():
                raise StoreConnectionError('Record store is unreachable')
            logger.info('runner.started')
            result = await work(ReconciliationRepository(store))
            render(result)
            logger.info('runner.finished')
        return EXIT_OK
    except Exception as exc:
        print(f"\nFATAL ERROR: {exc}")
        traceback.print_exc()
        return EXIT_FAILURE
    finally:
        await store.close()


# =============================================================================
# Renderers
# =============================================================================


def print_assignment(result: AssignmentRunResult) -> None:
    _banner('ASSIGN DEALS TO MERCHANT ACCOUNTS')
    print(f"Accounts: {result.account_count}")
    print(f"Deals:    {result.deal_count}")
    if result.plan is not None:
        print("\nAssignment plan:")
        print(f"  Assigned to accounts: {result.plan.assigned_count}")
        print(f"  Unassigned:           {result.plan.unassigned_count}")
        print(f"\nUpdated {result.writes.updated}/{len(result.plan)} deals")
        if result.writes.failed:
            print(f"  {result.writes.failed} updates failed: {', '.join(result.writes.failures)}")
    if result.deals_with_account is not None:
        print("\nVerification:")
        print(f"  Deals with account_id:    {result.deals_with_account}")
        print(f"  Deals without account_id: {result.deals_without_account}")
    _print_errors(result.errors)


def print_propagation(result: PropagationResult) -> None:
    _banner('PROPAGATE ACCOUNT OWNERS TO DEALS')
    print(f"Accounts loaded:     {result.account_count}")
    print(f"Pages processed:     {result.pages}")
    print(f"Deals scanned:       {result.deals_scanned}")
    print(f"Dangling references: {result.dangling_references}")
    print(f"Unlinked with owner: {result.unlinked_scanned}")
    print(f"\nUpdated: {result.writes.updated} deals")
    print(f"Skipped: {result.writes.skipped} deals (already correct)")
    if result.writes.failed:
        print(f"Failed:  {result.writes.failed} deals: {', '.join(result.writes.failures)}")
    if result.coverage_pct is not None:
        print("\nFinal statistics:")
        print(f"  Total deals:       {result.total_deals}")
        print(f"  Deals with account: {result.deals_with_account}")
        print(f"  Deals with owner:   {result.deals_with_owner}")
        print(f"  Coverage:           {result.coverage_pct:.1f}%")
    _print_errors(result.errors)


def print_mismatch(report: MismatchReport) -> None:
    _banner('DEALS REFERENCING NON-EXISTENT ACCOUNTS')
    print("Sample deals WITHOUT account_id:")
    for deal in report.unlinked_samples:
        print(f"  - {deal.title} ({deal.merchant})")

    print("\nSample deals WITH account_id:")
    for check in report.checks:
        print(f"  - {check.title} ({check.merchant}) -> {check.account_id}")
        if check.exists:
            print(f"    Account exists: {check.account_name}")
        elif check.error:
            print(f"    Account lookup failed: {check.error}")
        else:
            print("    Account NOT FOUND in database!")

    if report.has_mismatch:
        print(f"\nHypothesis: {report.hypothesis}")
    _print_errors(report.errors)


def print_purge(result: PurgeResult) -> None:
    _banner('DELETE SYNTHETIC DATA')
    for collection, count in result.deleted.items():
        print(f"Deleted {count} synthetic rows from {collection}")
    for collection, error in result.failed.items():
        print(f"Delete from {collection} FAILED: {error}")
    print("\nRemaining rows:")
    for collection, count in result.remaining.items():
        print(f"  {collection}: {'unknown' if count is None else count}")
    _print_errors(result.errors)


def print_toggle(result: ToggleResult) -> None:
    _banner('HIDE EMPLOYEE FROM LISTINGS')
    if result.employee is not None:
        emp = result.employee
        print(f"  - {emp.id}: \"{emp.name}\"")
        print(f"    Status: {emp.status.value}, Role: {emp.role}")
    if result.outcome is ToggleOutcome.HIDDEN:
        print(f"\nHidden: {result.employee.name if result.employee else result.employee_id}")
    elif result.outcome is ToggleOutcome.ALREADY_INACTIVE:
        print("\nAlready inactive, nothing to do")
    elif result.outcome is ToggleOutcome.NOT_FOUND:
        print(f"\nEmployee {result.employee_id} not found")
    else:
        print(f"\nUpdate failed: {result.error}")


def print_distribution(dist: DealDistribution) -> None:
    _banner(f'DEAL DISTRIBUTION (first {dist.sample_size} deals)')
    _print_errors(dist.errors)
    for title, counter in (
        ('By owner', {dist.owner_label(k): v for k, v in dist.by_owner.most_common()}),
        ('By division', dict(dist.by_division.most_common())),
        ('By category', dict(dist.by_category.most_common())),
        ('By stage', dict(dist.by_stage.most_common())),
    ):
        print(f"\n{title}:")
        for key, count in counter.items():
            print(f"  - {key}: {count:,}")

    print("\nCategories by division:")
    for division, counts in dist.category_by_division.items():
        print(f"\n  {division}:")
        for category, count in counts.most_common(10):
            print(f"    - {category}: {count:,}")


def print_dashboard(report: DashboardReport) -> None:
    _banner('DASHBOARD AGGREGATIONS')
    _print_errors(report.errors)
    aggregations = report.aggregations
    if aggregations is None:
        return
    print(f"Total deals:  {aggregations.total}")
    print(f"Divisions:    {len(aggregations.by_division)}")
    print(f"Last updated: {aggregations.last_updated or 'N/A'}")
    for div in aggregations.by_division:
        print(f"  - {div.division}: {div.total} deals")
        if div.categories:
            cats = ', '.join(f"{c.name} ({c.count})" for c in div.categories)
            print(f"    Categories: {cats}")
    stages = aggregations.by_stage
    print("\nStages:")
    print(f"  Draft: {stages.draft}")
    print(f"  Won:   {stages.won}")
    print(f"  Live:  {stages.live}")
    print(f"  Lost:  {stages.lost}")


def print_coverage(report: CoverageReport) -> None:
    _banner('ACCOUNT OWNER COVERAGE (externally-sourced records)')
    print(f"Total deals:              {report.total_deals}")
    print(f"Deals with account_id:    {report.deals_with_account} ({report.account_pct:.1f}%)")
    print(f"Deals with account_owner: {report.deals_with_owner} ({report.owner_pct:.1f}%)")
    print(f"Total accounts:           {report.total_accounts}")
    print(
        f"Accounts with owner:      {report.accounts_with_owner} "
        f"({report.account_owner_pct:.1f}%)"
    )
    print(f"Total employees:          {report.total_employees}")

    trace = report.trace
    if trace is not None:
        print("\nTrace of one linked deal:")
        print(f"  Deal:    {trace.deal_id}")
        print(f"  Account: {trace.account_id} ({trace.account_name or '-'})")
        print(f"  Owner:   {trace.owner_id or '(null)'} ({trace.owner_name or '-'})")
        print(f"  Status:  {trace.status.value}")
        if trace.deal_owner_matches is False:
            print("  Deal owner differs from account owner (run propagation)")
    _print_errors(report.errors)


# =============================================================================
# Entry points (one per script)
# =============================================================================


async def assign_deals(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'assignment',
        lambda repo: DealAssigner(repo).run(),
        print_assignment,
        store_factory,
    )


async def propagate_owners(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'propagation',
        lambda repo: OwnerPropagator(
            repo, batch_size=config.BATCH_SIZE, pagination=config.PAGINATION_MODE
        ).run(),
        print_propagation,
        store_factory,
    )


async def check_account_mismatch(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'auditor',
        lambda repo: MismatchAuditor(repo, sample_size=config.AUDIT_SAMPLE_SIZE).run(),
        print_mismatch,
        store_factory,
    )


async def purge_synthetic_data(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'purger',
        lambda repo: SyntheticDataPurger(repo).run(),
        print_purge,
        store_factory,
    )


async def hide_employee(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'visibility',
        lambda repo: OwnerVisibilityToggle(repo).deactivate(config.HIDDEN_EMPLOYEE_ID),
        print_toggle,
        store_factory,
    )


async def report_distribution(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'reporting',
        lambda repo: ReportingDiagnostics(repo, sample_limit=config.REPORT_SAMPLE_LIMIT).distribution(),
        print_distribution,
        store_factory,
    )


async def report_dashboard(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'reporting',
        lambda repo: ReportingDiagnostics(repo).dashboard_report(),
        print_dashboard,
        store_factory,
    )


async def check_owner_coverage(store_factory: Callable[[], RecordStore] = default_store) -> int:
    return await run_component(
        'coverage',
        lambda repo: ReportingDiagnostics(repo).ownership_coverage(),
        print_coverage,
        store_factory,
    )
