"""
Reconciliation pipeline components.

Keeps deal → account → owner consistent: deterministic assignment, owner
propagation, mismatch auditing, synthetic data purging, the owner visibility
toggle, and reporting.
"""

from .assignment import AssignmentRunResult, DealAssigner, build_assignment_plan
from .auditor import MismatchAuditor, MismatchReport, ReferenceCheck, ReferenceStatus
from .propagation import OwnerPropagator, PropagationResult
from .purger import PurgeResult, SyntheticDataPurger
from .reporting import (
    CoverageReport,
    DashboardAggregations,
    DashboardReport,
    DealDistribution,
    ReportingDiagnostics,
)
from .visibility import OwnerVisibilityToggle, ToggleOutcome, ToggleResult

__all__ = [
    'build_assignment_plan',
    'DealAssigner',
    'AssignmentRunResult',
    'OwnerPropagator',
    'PropagationResult',
    'MismatchAuditor',
    'MismatchReport',
    'ReferenceCheck',
    'ReferenceStatus',
    'SyntheticDataPurger',
    'PurgeResult',
    'OwnerVisibilityToggle',
    'ToggleOutcome',
    'ToggleResult',
    'ReportingDiagnostics',
    'DealDistribution',
    'DashboardAggregations',
    'DashboardReport',
    'CoverageReport',
]
