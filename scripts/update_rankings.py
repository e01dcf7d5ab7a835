#!/usr/bin/env python3
"""
Ranking Refresh

Rewrites the SERP feature fields of every stored ranking result from the
advanced task result (stored master SERP when the API no longer has it).

Usage:
    # Set environment variables first (or put them in .env):
    export DATAFORSEO_LOGIN=your_login
    export DATAFORSEO_PASSWORD=your_password
    export DATABASE_URL=postgresql://...

    python scripts/update_rankings.py
    python scripts/update_rankings.py --delay 0.5
"""

import argparse
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


async def update_rankings(delay: float) -> dict:
    from serptrack.database import get_db_context
    from serptrack.tracking.refresh import refresh_rankings

    with get_db_context() as db:
        return await refresh_rankings(db, delay=delay)


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(description="Refresh SERP features of stored ranking results")
    parser.add_argument("--delay", type=float, default=0.2, help="Seconds to wait between tasks")
    args = parser.parse_args()

    logger.info("Starting ranking refresh using the advanced task results...")
    summary = asyncio.run(update_rankings(args.delay))

    print("\n--- Update Complete ---")
    print(f"Updated: {summary['updated']}")
    print(f"Errors:  {summary['errors']}")
    print(f"Skipped: {summary['skipped']}")


if __name__ == "__main__":
    main()
