#!/usr/bin/env python3
"""
Report owner coverage of CRM-imported deals and accounts, and trace one
deal -> account -> owner chain.

Usage:
    python scripts/check_account_owners.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import check_owner_coverage


if __name__ == '__main__':
    sys.exit(asyncio.run(check_owner_coverage()))
