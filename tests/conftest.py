"""
Pytest configuration and shared fixtures.

Key fixtures:
- external_accounts / external_deals / employees: representative CRM rows
- store: InMemoryRecordStore seeded with CRM rows plus synthetic seed rows
- repository: ReconciliationRepository over that store

Behaviour tests run against the in-memory store. Postgres SQL generation is
tested against a mocked SQLAlchemy engine in test_postgres_store.py.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from deal_reconciler.clients.memory_store import InMemoryRecordStore
from deal_reconciler.repository import ReconciliationRepository


def make_deal(
    deal_id: str,
    account_id: str | None = None,
    account_owner_id: str | None = None,
    **extra,
) -> dict:
    """Deal row as stored (campaign_stage, not stage)."""
    row = {
        'id': deal_id,
        'title': f'Deal {deal_id}',
        'merchant': f'Merchant for {deal_id}',
        'category': 'Food & Drink',
        'division': 'Chicago',
        'campaign_stage': 'live',
        'account_id': account_id,
        'account_owner_id': account_owner_id,
    }
    row.update(extra)
    return row


def make_account(account_id: str, owner_id: str | None = None, name: str | None = None) -> dict:
    return {
        'id': account_id,
        'name': name or f'Account {account_id}',
        'account_owner_id': owner_id,
    }


def make_employee(employee_id: str, name: str, status: str = 'active') -> dict:
    return {
        'id': employee_id,
        'name': name,
        'email': f'{employee_id}@example.com',
        'role': 'Account Executive',
        'status': status,
    }


@pytest.fixture
def employees() -> list[dict]:
    return [
        make_employee('sf-emp-001', 'Alice Owner'),
        make_employee('sf-emp-002', 'Bob Owner'),
        make_employee('sf-0053c00000Bx01UAAR', 'Integration User'),
        make_employee('emp-001', 'Seed Person'),
    ]


@pytest.fixture
def external_accounts() -> list[dict]:
    return [
        make_account('sf-acc-001', 'sf-emp-001', 'Pizza Palace'),
        make_account('sf-acc-002', 'sf-emp-002', 'Taco Town'),
        make_account('sf-acc-003', None, 'Ownerless Cafe'),
    ]


@pytest.fixture
def external_deals() -> list[dict]:
    return [
        # Stale owner, should be corrected
        make_deal('sf-deal-001', 'sf-acc-001', 'sf-emp-002'),
        # Already correct
        make_deal('sf-deal-002', 'sf-acc-002', 'sf-emp-002'),
        # Owner missing, account has one
        make_deal('sf-deal-003', 'sf-acc-001', None),
        # Dangling reference: account was never imported
        make_deal('sf-deal-004', 'sf-acc-999', 'sf-emp-001'),
        # No account link at all
        make_deal('sf-deal-005', None, None),
        # Account has no owner
        make_deal('sf-deal-006', 'sf-acc-003', 'sf-emp-001'),
    ]


@pytest.fixture
def store(external_deals, external_accounts, employees) -> InMemoryRecordStore:
    """CRM rows plus synthetic seed rows in every collection."""
    return InMemoryRecordStore(
        deals=external_deals + [
            make_deal('gen-0001', 'merchant-001', 'emp-001'),
            make_deal('gen-0002'),
        ],
        accounts=external_accounts + [make_account('merchant-001', 'emp-001')],
        employees=employees,
    )


@pytest.fixture
def repository(store) -> ReconciliationRepository:
    return ReconciliationRepository(store)
