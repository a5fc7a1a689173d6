"""Initial schema - todos with subtasks

Revision ID: 001
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # Subtasks are rows with parent_id set; order_index orders siblings
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS todos (
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            completed INTEGER DEFAULT 0,
            parent_id TEXT REFERENCES todos(id) ON DELETE CASCADE,
            order_index INTEGER DEFAULT 0,
            start_time TEXT,
            end_time TEXT,
            should_breakdown INTEGER DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_todos_parent_id ON todos (parent_id)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_todos_start_time ON todos (start_time)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS todos"))
