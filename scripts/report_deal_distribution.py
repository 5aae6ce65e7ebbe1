#!/usr/bin/env python3
"""
Print deal counts by owner, division, category and stage over a bounded sample.

Usage:
    python scripts/report_deal_distribution.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from deal_reconciler.runner import report_distribution


if __name__ == '__main__':
    sys.exit(asyncio.run(report_distribution()))
