"""
Owner visibility toggle: hide an employee from UI listings without deleting it.

Listings filter on status = 'active', so flipping the status to 'inactive' is
enough. Deals and accounts keep pointing at the employee for history.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from ..errors import StoreError
from ..models.records import Employee, EmployeeStatus
from ..repository import ReconciliationRepository

logger = structlog.get_logger(__name__)


class ToggleOutcome(str, Enum):
    HIDDEN = 'hidden'
    ALREADY_INACTIVE = 'already_inactive'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'


@dataclass
class ToggleResult:
    employee_id: str
    outcome: ToggleOutcome
    employee: Employee | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome in (ToggleOutcome.HIDDEN, ToggleOutcome.ALREADY_INACTIVE)


class OwnerVisibilityToggle:
    def __init__(self, repository: ReconciliationRepository):
        self.repository = repository

    async def deactivate(self, employee_id: str) -> ToggleResult:
        """
        Set an employee's status to inactive.

        A missing employee is reported as NOT_FOUND, never raised.
        """
        try:
            employee = await self.repository.get_employee(employee_id)
        except StoreError as exc:
            logger.error('visibility.lookup_failed', employee_id=employee_id, error=exc.message)
            return ToggleResult(employee_id, ToggleOutcome.FAILED, error=exc.message)

        if employee is None:
            logger.warning('visibility.employee_not_found', employee_id=employee_id)
            return ToggleResult(employee_id, ToggleOutcome.NOT_FOUND)

        logger.info(
            'visibility.employee_found',
            employee_id=employee.id,
            name=employee.name,
            status=employee.status.value,
            role=employee.role,
        )

        if employee.status is EmployeeStatus.INACTIVE:
            return ToggleResult(employee_id, ToggleOutcome.ALREADY_INACTIVE, employee=employee)

        try:
            matched = await self.repository.set_employee_status(
                employee_id, EmployeeStatus.INACTIVE
            )
        except StoreError as exc:
            logger.error('visibility.update_failed', employee_id=employee_id, error=exc.message)
            return ToggleResult(employee_id, ToggleOutcome.FAILED, employee=employee, error=exc.message)

        if matched == 0:
            logger.warning('visibility.employee_not_found', employee_id=employee_id)
            return ToggleResult(employee_id, ToggleOutcome.NOT_FOUND, employee=employee)

        employee = employee.model_copy(update={'status': EmployeeStatus.INACTIVE})
        logger.info('visibility.hidden', employee_id=employee_id, name=employee.name)
        return ToggleResult(employee_id, ToggleOutcome.HIDDEN, employee=employee)
