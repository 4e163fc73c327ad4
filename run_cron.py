#!/usr/bin/env python3
"""
Freight Bridge - Standalone Catalog Sync Runner

Runs the weekly product catalog sync once and exits. Same job as
GET /api/cron/sync-products, for schedulers that run commands rather than
HTTP requests.

Requires DATABASE_URL, SECRET_KEY, SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.
"""
import asyncio
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Setup logging first
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Validate required environment variables
REQUIRED_VARS = ["DATABASE_URL", "SECRET_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]
missing = [var for var in REQUIRED_VARS if not os.getenv(var)]
if missing:
    logger.error(f"Missing required environment variables: {missing}")
    sys.exit(1)

# Import after env validation
from freight_bridge.jobs.catalog_sync import run_weekly_catalog_sync  # noqa: E402


async def main() -> int:
    logger.info("=" * 60)
    logger.info("Freight Bridge catalog sync")
    logger.info("=" * 60)
    logger.info(f"Started at: {datetime.now(timezone.utc).isoformat()}")

    result = await run_weekly_catalog_sync()
    logger.info(json.dumps(result))

    failed = [shop for shop in result.get("shops", []) if shop.get("error")]
    return 1 if failed else 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
