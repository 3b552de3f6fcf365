from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

_pool: Optional[asyncpg.Pool] = None


async def init_pool(database_url: str):
    """Initialize the connection pool."""
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(database_url, min_size=2, max_size=10)
    return _pool


async def get_pool() -> asyncpg.Pool:
    """Get the existing connection pool."""
    global _pool
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool first.")
    return _pool


async def close_pool():
    """Close the connection pool."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def get_connection():
    """Get a database connection from the pool."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


async def init_db():
    """Create tables if they don't exist."""
    async with get_connection() as conn:
        # Users table (directory)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id SERIAL PRIMARY KEY,
                name VARCHAR(255) NOT NULL,
                email VARCHAR(255) NOT NULL UNIQUE,
                password_hash VARCHAR(255),
                role VARCHAR(20) NOT NULL DEFAULT 'User'
                    CHECK (role IN ('Admin', 'I.T.', 'HR', 'User')),
                is_active BOOLEAN DEFAULT true,
                created_at TIMESTAMP DEFAULT NOW(),
                updated_at TIMESTAMP DEFAULT NOW()
            )
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)
        """)

        # Per-staff laptop pool
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS it_staff_inventory (
                id SERIAL PRIMARY KEY,
                user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
                available_laptops INTEGER NOT NULL DEFAULT 0 CHECK (available_laptops >= 0),
                updated_at TIMESTAMP DEFAULT NOW()
            )
        """)

        # Terminations (checklist embedded as JSONB)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS terminations (
                id SERIAL PRIMARY KEY,
                employee_name VARCHAR(255) NOT NULL,
                employee_email VARCHAR(255) NOT NULL,
                job_title VARCHAR(255),
                department VARCHAR(255),
                termination_date DATE NOT NULL,
                termination_reason TEXT,
                initiated_by VARCHAR(255),
                status VARCHAR(30) NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'overdue', 'equipment_returned', 'archived')),
                tracking_number VARCHAR(255),
                equipment_disposition VARCHAR(30) NOT NULL DEFAULT 'pending_assessment'
                    CHECK (equipment_disposition IN ('return_to_pool', 'retire', 'pending_assessment')),
                completed_by_user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
                checklist JSONB NOT NULL DEFAULT '[]'::jsonb,
                is_overdue BOOLEAN NOT NULL DEFAULT false,
                days_remaining INTEGER,
                overdue_notified_at TIMESTAMP,
                archived_at TIMESTAMP,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT NOW(),
                updated_at TIMESTAMP DEFAULT NOW()
            )
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_terminations_status ON terminations(status)
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_terminations_termination_date ON terminations(termination_date)
        """)

        # Scheduler toggles for worker tasks
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS scheduler_settings (
                task_key VARCHAR(100) PRIMARY KEY,
                task_label VARCHAR(255),
                description TEXT,
                enabled BOOLEAN NOT NULL DEFAULT false,
                max_per_cycle INTEGER DEFAULT 0,
                updated_at TIMESTAMP DEFAULT NOW()
            )
        """)
        await conn.execute("""
            INSERT INTO scheduler_settings (task_key, task_label, description, enabled, max_per_cycle)
            VALUES ('overdue_terminations', 'Overdue Terminations',
                    'Promotes terminations past the equipment return window and notifies HR.',
                    true, 0)
            ON CONFLICT (task_key) DO NOTHING
        """)
