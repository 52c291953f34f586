#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create MongoDB indexes for the emergency collections.

Usage: python scripts/create_indexes.py [--drop]
"""

import argparse
import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.mongodb import (
    CONTACTS_COLLECTION, EVENTS_COLLECTION, NOTIFICATIONS_COLLECTION,
    close_mongodb_connection, get_mongodb_service
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Create MongoDB indexes."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--drop', action='store_true', help='Drop existing secondary indexes first')
    args = parser.parse_args()

    try:
        mongodb_service = get_mongodb_service()

        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB - Database: {health['database']}")

        if args.drop:
            for collection in (EVENTS_COLLECTION, CONTACTS_COLLECTION, NOTIFICATIONS_COLLECTION):
                mongodb_service.drop_indexes(collection)

        mongodb_service.create_indexes()
        logger.info("MongoDB indexes created successfully!")

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
