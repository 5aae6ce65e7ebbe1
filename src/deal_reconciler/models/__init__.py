"""
Data models for the deal ownership reconciler.

Provides the store record models (Deal, MerchantAccount, Employee), the
identifier provenance tags, and the in-memory assignment plan.
"""

from .plan import AssignmentPlan, PlannedAssignment
from .records import (
    EXTERNAL_PREFIX,
    Collection,
    Deal,
    Employee,
    EmployeeStatus,
    MerchantAccount,
    RecordSource,
    classify_identifier,
)

__all__ = [
    # Records
    'Deal',
    'MerchantAccount',
    'Employee',
    'EmployeeStatus',
    # Identifier tags
    'Collection',
    'RecordSource',
    'EXTERNAL_PREFIX',
    'classify_identifier',
    # Assignment plan
    'AssignmentPlan',
    'PlannedAssignment',
]
