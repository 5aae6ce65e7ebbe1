"""
Deal Ownership Reconciler

Keeps the deal → merchant account → owner chain consistent in the hosted
deals store that backs the merchant-deals dashboard, after one-way CRM
imports and synthetic seeding.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .clients import InMemoryRecordStore, PostgresRecordStore, RecordStore, RowFilter
from .errors import (
    BatchResult,
    ConfigurationError,
    NoAccountsAvailableError,
    PipelineError,
    ReconcilerError,
    StoreError,
)
from .logging import PipelineTimer, configure_logging, logging_context
from .models import (
    AssignmentPlan,
    Collection,
    Deal,
    Employee,
    MerchantAccount,
    RecordSource,
)
from .pipeline import (
    DealAssigner,
    MismatchAuditor,
    OwnerPropagator,
    OwnerVisibilityToggle,
    ReportingDiagnostics,
    SyntheticDataPurger,
    build_assignment_plan,
)
from .repository import ReconciliationRepository

__all__ = [
    # Version
    '__version__',
    # Store
    'RecordStore',
    'RowFilter',
    'PostgresRecordStore',
    'InMemoryRecordStore',
    'ReconciliationRepository',
    # Models
    'Deal',
    'MerchantAccount',
    'Employee',
    'Collection',
    'RecordSource',
    'AssignmentPlan',
    # Pipeline
    'build_assignment_plan',
    'DealAssigner',
    'OwnerPropagator',
    'MismatchAuditor',
    'SyntheticDataPurger',
    'OwnerVisibilityToggle',
    'ReportingDiagnostics',
    # Logging
    'configure_logging',
    'logging_context',
    'PipelineTimer',
    # Errors
    'ReconcilerError',
    'ConfigurationError',
    'StoreError',
    'PipelineError',
    'NoAccountsAvailableError',
    'BatchResult',
]
