"""
Custom exceptions and error handling for the deal ownership reconciler.

Provides:
- Typed exception hierarchy for different failure modes
- Error context preservation for debugging
- Best-effort batch accounting (BatchResult) for per-row writes
"""

from dataclasses import dataclass, field
from typing import Any


class ReconcilerError(Exception):
    """Base exception for all reconciler errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


class ConfigurationError(ReconcilerError):
    """Required configuration (store credentials) is missing. Always fatal."""

    pass


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(ReconcilerError):
    """Base class for record store errors."""

    pass


class StoreConnectionError(StoreError):
    """The store could not be reached."""

    pass


class StoreQueryError(StoreError):
    """A read (select, count, lookup, rpc) failed or was malformed."""

    pass


class StoreWriteError(StoreError):
    """A single-row update or a filtered delete failed."""

    pass


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(ReconcilerError):
    """Base class for pipeline-related errors."""

    pass


class NoAccountsAvailableError(PipelineError):
    """Assignment was requested but the store holds no merchant accounts."""

    pass


class AssignmentError(PipelineError):
    """The assignment run could not load its inputs."""

    pass


# =============================================================================
# Batch Accounting
# =============================================================================


@dataclass
class BatchResult:
    """
    Counters for a best-effort batch of single-row writes.

    A failed write is recorded here and the batch moves on to the next row.
    Tests assert on these counts directly.
    """

    updated: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        """Rows that needed a write (updated + failed)."""
        return self.updated + self.failed

    @property
    def processed(self) -> int:
        """Every row looked at, written or not."""
        return self.updated + self.skipped + self.failed

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0 and not self.errors

    def record_update(self) -> None:
        self.updated += 1

    def record_skip(self) -> None:
        self.skipped += 1

    def record_failure(self, record_id: str, error: Exception | str | None = None) -> None:
        """Record a failed row write with the offending identifier."""
        self.failed += 1
        self.failures.append(record_id)
        if error is not None:
            self.errors.append(f'{record_id}: {error}')

    def merge(self, other: 'BatchResult') -> None:
        """Fold another batch's counters into this one."""
        self.updated += other.updated
        self.skipped += other.skipped
        self.failed += other.failed
        self.failures.extend(other.failures)
        self.errors.extend(other.errors)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'updated': self.updated,
            'skipped': self.skipped,
            'failed': self.failed,
            'failures': list(self.failures),
            'errors': list(self.errors),
        }


# =============================================================================
# Error Handling Utilities
# =============================================================================


def wrap_store_error(
    exc: Exception,
    context: dict[str, Any] | None = None,
    write: bool = False,
) -> StoreError:
    """
    Wrap a driver/SQLAlchemy exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging
        write: True when the failing statement was an update or delete

    Returns:
        Typed StoreError subclass
    """
    if isinstance(exc, StoreError):
        return exc

    error_str = str(exc).lower()
    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if (
        isinstance(exc, (ConnectionError, TimeoutError, OSError))
        or 'connection' in error_str
        or 'could not connect' in error_str
        or 'timeout' in error_str
    ):
        return StoreConnectionError(
            f"Store connection failed: {exc}",
            context=ctx,
        )
    elif write:
        return StoreWriteError(
            f"Store write failed: {exc}",
            context=ctx,
        )
    else:
        return StoreQueryError(
            f"Store query failed: {exc}",
            context=ctx,
        )
