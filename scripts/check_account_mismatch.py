#!/usr/bin/env python3
"""
Read-only audit: do sampled CRM deals point at accounts that exist?

Prints the windowed-import hypothesis when any reference is missing.

Usage:
    python scripts/check_account_mismatch.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import check_account_mismatch


if __name__ == '__main__':
    sys.exit(asyncio.run(check_account_mismatch()))
