#!/usr/bin/env python3
"""
Copy each merchant account's owner onto every deal that references the account.

Deals already carrying the right owner are skipped, so the script is safe to
rerun. Deals pointing at a missing account get their owner cleared.

Usage:
    python scripts/populate_account_owners.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import propagate_owners


if __name__ == '__main__':
    sys.exit(asyncio.run(propagate_owners()))
