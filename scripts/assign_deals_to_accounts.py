#!/usr/bin/env python3
"""
Assign every deal to a merchant account (and its owner), deterministically.

Deal i in id order is left unassigned when i % 20 == 0 and otherwise goes to
accounts[i % len(accounts)]. Rerunning over the same data gives the same result.

Usage:
    python scripts/assign_deals_to_accounts.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import assign_deals


if __name__ == '__main__':
    sys.exit(asyncio.run(assign_deals()))
