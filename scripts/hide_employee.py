#!/usr/bin/env python3
"""
Hide the configured employee (HIDDEN_EMPLOYEE_ID) from UI listings.

Sets the employee's status to inactive; nothing is deleted.

Usage:
    python scripts/hide_employee.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import hide_employee


if __name__ == '__main__':
    sys.exit(asyncio.run(hide_employee()))
