"""
Record models for the three store collections: deals, merchant_accounts, employees.

Identifiers carry their provenance in a prefix:
- Externally-sourced rows (CRM import) use 'sf-' in every collection
- Synthetic seed rows use a per-collection prefix ('gen-', 'merchant-', 'emp-')

The prefix check lives in classify_identifier() only. Everything else asks
a record for its RecordSource tag instead of comparing strings.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

EXTERNAL_PREFIX = 'sf-'


class RecordSource(str, Enum):
    """Where a record came from, derived from its identifier prefix."""

    EXTERNAL = 'external'
    SYNTHETIC = 'synthetic'


class Collection(str, Enum):
    """Store collections touched by the reconciler (table names are bit-exact)."""

    DEALS = 'deals'
    MERCHANT_ACCOUNTS = 'merchant_accounts'
    EMPLOYEES = 'employees'

    @property
    def synthetic_prefix(self) -> str:
        return _SYNTHETIC_PREFIXES[self]

    @property
    def external_prefix(self) -> str:
        return EXTERNAL_PREFIX

    def prefix_for(self, source: RecordSource) -> str:
        """Identifier prefix used by rows of the given provenance."""
        if source is RecordSource.EXTERNAL:
            return self.external_prefix
        return self.synthetic_prefix


_SYNTHETIC_PREFIXES = {
    Collection.DEALS: 'gen-',
    Collection.MERCHANT_ACCOUNTS: 'merchant-',
    Collection.EMPLOYEES: 'emp-',
}


def classify_identifier(collection: Collection, record_id: str | None) -> RecordSource | None:
    """
    Tag an identifier with its provenance.

    Args:
        collection: Collection the identifier belongs to
        record_id: Row identifier

    Returns:
        RecordSource, or None when the identifier matches neither convention
    """
    if not record_id:
        return None
    if record_id.startswith(collection.external_prefix):
        return RecordSource.EXTERNAL
    if record_id.startswith(collection.synthetic_prefix):
        return RecordSource.SYNTHETIC
    return None


class EmployeeStatus(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    PENDING = 'pending'


class Deal(BaseModel):
    """
    A sellable offer, optionally linked to a merchant account.

    account_owner_id is a denormalized copy of the linked account's owner.
    It must be None whenever account_id is None.
    """

    id: str = Field(..., description='Globally unique identifier (prefix marks provenance)')
    title: str = Field(default='', description='Deal headline')
    merchant: str | None = Field(default=None, description='Merchant display name')
    category: str | None = Field(default=None)
    division: str | None = Field(default=None)
    stage: str | None = Field(
        default=None, description='Campaign stage (stored as campaign_stage)'
    )
    account_id: str | None = Field(default=None, description='Reference to merchant_accounts.id')
    account_owner_id: str | None = Field(
        default=None, description="Denormalized copy of the account's owner"
    )

    @property
    def source(self) -> RecordSource | None:
        return classify_identifier(Collection.DEALS, self.id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'Deal':
        """Build a Deal from a store row (campaign_stage → stage)."""
        return cls(
            id=row['id'],
            title=row.get('title') or '',
            merchant=row.get('merchant'),
            category=row.get('category'),
            division=row.get('division'),
            stage=row.get('campaign_stage'),
            account_id=row.get('account_id'),
            account_owner_id=row.get('account_owner_id'),
        )


class MerchantAccount(BaseModel):
    """A merchant entity. Its account_owner_id is the source of truth for its deals."""

    id: str
    name: str = ''
    account_owner_id: str | None = None

    @property
    def source(self) -> RecordSource | None:
        return classify_identifier(Collection.MERCHANT_ACCOUNTS, self.id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'MerchantAccount':
        return cls(
            id=row['id'],
            name=row.get('name') or '',
            account_owner_id=row.get('account_owner_id'),
        )


class Employee(BaseModel):
    """Reference row for account owners. Only read, except for status toggling."""

    id: str
    name: str = ''
    email: str | None = None
    role: str | None = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE

    @property
    def source(self) -> RecordSource | None:
        return classify_identifier(Collection.EMPLOYEES, self.id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'Employee':
        return cls(
            id=row['id'],
            name=row.get('name') or '',
            email=row.get('email'),
            role=row.get('role'),
            status=row.get('status') or EmployeeStatus.ACTIVE,
        )
