#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Run one stale-incident sweep, for cron or other external schedulers.

Usage: python scripts/run_reaper.py [--hours 48]
"""

import argparse
import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.events import EventStore
from services.mongodb import close_mongodb_connection, get_mongodb_service
from services.reaper import StaleIncidentReaper

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Auto-cancel stale emergency incidents")
    parser.add_argument(
        '--hours',
        type=float,
        default=float(os.getenv('REAPER_HOURS_THRESHOLD', '48')),
        help='Age threshold in hours'
    )
    args = parser.parse_args()

    try:
        reaper = StaleIncidentReaper(EventStore(get_mongodb_service()))
        cancelled = reaper.sweep(args.hours)
        logger.info(f"Auto-cancelled {cancelled} stale emergencies (threshold {args.hours}h)")
    except Exception as e:
        logger.error(f"Reaper sweep failed: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
