#!/usr/bin/env python3
"""
Print the dashboard aggregation function's output (totals, divisions, stages).

Usage:
    python scripts/check_dashboard_data.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import report_dashboard


if __name__ == '__main__':
    sys.exit(asyncio.run(report_dashboard()))
