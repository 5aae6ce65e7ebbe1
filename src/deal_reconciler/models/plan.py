"""
Assignment plan staged by the assignment engine before any write happens.

The plan lives only for the duration of a run. It is never persisted.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PlannedAssignment:
    """Target state for one deal. Both fields are None for an unassigned deal."""

    deal_id: str
    account_id: str | None
    account_owner_id: str | None

    @property
    def is_assigned(self) -> bool:
        return self.account_id is not None


@dataclass
class AssignmentPlan:
    """Ordered assignments, one per deal, in deal order."""

    entries: list[PlannedAssignment] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def assigned_count(self) -> int:
        return sum(1 for e in self.entries if e.is_assigned)

    @property
    def unassigned_count(self) -> int:
        return len(self.entries) - self.assigned_count

    def for_deal(self, deal_id: str) -> PlannedAssignment | None:
        for entry in self.entries:
            if entry.deal_id == deal_id:
                return entry
        return None

    def summary(self) -> dict[str, int]:
        return {
            'total': len(self.entries),
            'assigned': self.assigned_count,
            'unassigned': self.unassigned_count,
        }
