#!/usr/bin/env python3
"""
Create the VIDEOS table in Snowflake.

Idempotent: uses CREATE TABLE IF NOT EXISTS.

Usage:
    python scripts/create_schema.py

Requires:
    - .env file with Snowflake credentials
"""

import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tubely.config.settings import get_settings
from tubely.infrastructure.snowflake.client import SnowflakeConfig, create_snowflake_connection
from tubely.infrastructure.snowflake.repositories.videos import VideoRepository


def main():
    settings = get_settings()

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    print(f"Creating VIDEOS in {config.database}.{config.schema}")

    try:
        with create_snowflake_connection(config=config) as conn:
            VideoRepository(conn).create_table()
    except Exception as e:
        print(f"ERROR creating schema: {e}")
        sys.exit(1)

    print("Done")


if __name__ == '__main__':
    main()
