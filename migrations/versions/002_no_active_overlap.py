"""Exclusion constraint: active reservations on a listing never overlap.

Second layer under the store's per-listing advisory lock; holds even if
application code is bypassed.

Revision ID: 002_no_active_overlap
Revises: 001_initial_schema
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_no_active_overlap"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parents[1] / "sql" / "002_no_active_overlap.sql"


def upgrade() -> None:
    # DO $$ blocks need raw driver execution
    op.get_bind().exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    op.execute("ALTER TABLE reservations DROP CONSTRAINT IF EXISTS no_active_overlap")
    # btree_gist is kept: other indexes may depend on it.
