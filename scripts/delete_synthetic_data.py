#!/usr/bin/env python3
"""
Delete seeded (synthetic) deals, merchant accounts and employees.

Only rows whose id carries a synthetic prefix are deleted; CRM-imported rows
are never touched.

Usage:
    python scripts/delete_synthetic_data.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import purge_synthetic_data


if __name__ == '__main__':
    sys.exit(asyncio.run(purge_synthetic_data()))
