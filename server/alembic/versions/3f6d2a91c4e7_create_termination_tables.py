"""create_termination_tables

Revision ID: 3f6d2a91c4e7
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f6d2a91c4e7'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255) NOT NULL UNIQUE,
            password_hash VARCHAR(255),
            role VARCHAR(20) NOT NULL DEFAULT 'User',
            is_active BOOLEAN DEFAULT true,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW(),
            CONSTRAINT users_role_check CHECK (role IN ('Admin', 'I.T.', 'HR', 'User'))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS it_staff_inventory (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
            available_laptops INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMP DEFAULT NOW(),
            CONSTRAINT check_available_laptops CHECK (available_laptops >= 0)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS terminations (
            id SERIAL PRIMARY KEY,
            employee_name VARCHAR(255) NOT NULL,
            employee_email VARCHAR(255) NOT NULL,
            job_title VARCHAR(255),
            department VARCHAR(255),
            termination_date DATE NOT NULL,
            termination_reason TEXT,
            initiated_by VARCHAR(255),
            status VARCHAR(30) NOT NULL DEFAULT 'pending',
            tracking_number VARCHAR(255),
            equipment_disposition VARCHAR(30) NOT NULL DEFAULT 'pending_assessment',
            completed_by_user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            checklist JSONB NOT NULL DEFAULT '[]'::jsonb,
            is_overdue BOOLEAN NOT NULL DEFAULT false,
            days_remaining INTEGER,
            overdue_notified_at TIMESTAMP,
            archived_at TIMESTAMP,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT NOW(),
            updated_at TIMESTAMP DEFAULT NOW(),
            CONSTRAINT check_termination_status CHECK (
                status IN ('pending', 'overdue', 'equipment_returned', 'archived')
            ),
            CONSTRAINT check_equipment_disposition CHECK (
                equipment_disposition IN ('return_to_pool', 'retire', 'pending_assessment')
            )
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_terminations_status ON terminations(status)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_terminations_termination_date ON terminations(termination_date)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS scheduler_settings (
            task_key VARCHAR(100) PRIMARY KEY,
            task_label VARCHAR(255),
            description TEXT,
            enabled BOOLEAN NOT NULL DEFAULT false,
            max_per_cycle INTEGER DEFAULT 0,
            updated_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.execute("""
        INSERT INTO scheduler_settings (task_key, task_label, description, enabled, max_per_cycle)
        VALUES ('overdue_terminations', 'Overdue Terminations',
                'Promotes terminations past the equipment return window and notifies HR.',
                true, 0)
        ON CONFLICT (task_key) DO NOTHING
    """)


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DELETE FROM scheduler_settings WHERE task_key = 'overdue_terminations'")
    op.execute("DROP TABLE IF EXISTS terminations CASCADE")
    op.execute("DROP TABLE IF EXISTS it_staff_inventory CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
