"""Add note and duration_minutes columns for duration-only scheduling

Revision ID: 002
Revises: 001
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # Check existing columns
    columns = {row[1] for row in conn.execute(text("PRAGMA table_info(todos)")).fetchall()}

    if "note" not in columns:
        conn.execute(text("ALTER TABLE todos ADD COLUMN note TEXT"))
    if "duration_minutes" not in columns:
        conn.execute(text("ALTER TABLE todos ADD COLUMN duration_minutes INTEGER"))


def downgrade() -> None:
    # SQLite doesn't support DROP COLUMN easily; downgrade is a no-op
    pass
