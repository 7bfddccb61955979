#!/usr/bin/env python3
"""
Find (and optionally delete) objects no video record points at.

Orphans come from two places:
- a record update that failed after upload, where the compensating
  delete failed as well (logged as "Orphaned object left in storage")
- re-uploads, which point the record at a new key and leave the old
  object behind

Objects newer than the grace period are skipped so in-flight uploads
are never touched.

Usage:
    python scripts/sweep_orphans.py              # report only
    python scripts/sweep_orphans.py --delete     # report and delete

Requires:
    - .env file with S3 and Snowflake credentials
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tubely.config.settings import get_settings
from tubely.core.videos.reconcile import find_orphaned_keys, referenced_keys
from tubely.infrastructure.snowflake.client import SnowflakeConfig, create_snowflake_connection
from tubely.infrastructure.snowflake.repositories.videos import VideoRepository
from tubely.infrastructure.storage.client import StorageConfig, create_storage_client


async def sweep(grace_hours: float, delete: bool) -> int:
    settings = get_settings()

    snowflake_config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )
    storage = create_storage_client(config=StorageConfig(
        region=settings.s3_region,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        endpoint_url=settings.s3_endpoint_url,
    ))

    with create_snowflake_connection(config=snowflake_config) as conn:
        stored_values = VideoRepository(conn).list_storage_urls()

    referenced = referenced_keys(stored_values, settings.s3_bucket, settings.video_public_base_url)
    objects = await storage.list_objects(settings.s3_bucket)

    orphans = find_orphaned_keys(
        objects,
        referenced,
        now=datetime.now(timezone.utc),
        grace_period=timedelta(hours=grace_hours),
    )

    print(f"{len(objects)} objects, {len(referenced)} referenced, {len(orphans)} orphaned")

    for key in orphans:
        print(f"  {key}")
        if delete:
            await storage.delete_object(settings.s3_bucket, key)

    if delete and orphans:
        print(f"Deleted {len(orphans)} objects")

    return len(orphans)


def main():
    parser = argparse.ArgumentParser(description='Sweep unreferenced objects from the video bucket')
    parser.add_argument('--delete', action='store_true', help='Delete orphans instead of only listing them')
    parser.add_argument('--grace-hours', type=float, default=24.0, help='Ignore objects newer than this')
    args = parser.parse_args()

    try:
        asyncio.run(sweep(args.grace_hours, args.delete))
    except Exception as e:
        print(f"ERROR during sweep: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
