#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Seed the emergency contact directory.

Loads contacts from a JSON array (camelCase keys, the stored shape) and
upserts them by identifier. Entries without an ``id`` get a deterministic
one derived from country, city and English name, so re-running the seed
replaces instead of duplicating.

Usage: python scripts/seed_contacts.py [--file contacts.json] [--replace]
"""

import argparse
import hashlib
import json
import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError

from models.entities import ContactEntry
from services.contacts import ContactDirectory
from services.mongodb import CONTACTS_COLLECTION, close_mongodb_connection, get_mongodb_service

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

DEFAULT_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data', 'emergency_contacts.json')


def stable_id(record: dict) -> str:
    """24-hex identifier derived from the contact's country, city and name."""
    name = record.get('name', {})
    key = "|".join([record.get('country', ''), record.get('city', ''), name.get('en') or json.dumps(name, sort_keys=True)])
    return hashlib.sha1(key.encode('utf-8')).hexdigest()[:24]


def load_contacts(path: str) -> list:
    with open(path, encoding='utf-8') as handle:
        records = json.load(handle)

    contacts = []
    for index, record in enumerate(records):
        record.setdefault('id', stable_id(record))
        try:
            contacts.append(ContactEntry.model_validate(record))
        except ValidationError as e:
            logger.error(f"Skipping contact #{index}: {e.error_count()} validation error(s)\n{e}")
    return contacts


def main():
    parser = argparse.ArgumentParser(description="Seed the emergency contact directory")
    parser.add_argument('--file', default=DEFAULT_FILE, help='JSON file with contact entries')
    parser.add_argument('--replace', action='store_true', help='Delete all existing contacts first')
    args = parser.parse_args()

    try:
        mongodb_service = get_mongodb_service()
        contacts = load_contacts(args.file)

        if args.replace:
            deleted = mongodb_service.get_collection(CONTACTS_COLLECTION).delete_many({}).deleted_count
            logger.info(f"Deleted {deleted} existing contacts")

        count = ContactDirectory(mongodb_service).upsert_many(contacts)
        logger.info(f"Seeded {count} emergency contacts from {args.file}")

    except Exception as e:
        logger.error(f"Failed to seed contacts: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
