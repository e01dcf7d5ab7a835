#!/usr/bin/env python3
"""
Location Import

Fetches the DataForSEO SERP and Labs location lists, merges them by
location code and upserts the result into the locations table.

Usage:
    python scripts/populate_locations.py
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def populate() -> dict:
    from serptrack.catalog.locations import populate_locations
    from serptrack.database import get_db_context, init_db

    init_db()
    with get_db_context() as db:
        return await populate_locations(db)


def main():
    load_dotenv()

    summary = asyncio.run(populate())

    print("\n--- Import Complete ---")
    print(f"Inserted: {summary['inserted']}")
    print(f"Updated:  {summary['updated']}")
    print(f"Errors:   {summary['errors']}")
    print(f"Total locations in database: {summary['total']}")


if __name__ == "__main__":
    main()
