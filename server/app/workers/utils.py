"""Shared utilities for Celery worker tasks."""

import os

import asyncpg
from dotenv import load_dotenv

load_dotenv()


async def get_db_connection() -> asyncpg.Connection:
    """Create a database connection for the worker."""
    database_url = os.getenv("DATABASE_URL", "")
    return await asyncpg.connect(database_url)
