"""Initial schema -- accounts, artifacts, support messages, site config.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op

from studio.schema_sql import indexes, tables

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _execute_all(statements: list[str]) -> None:
    """Execute a list of SQL statements sequentially."""
    for stmt in statements:
        op.execute(stmt)


def upgrade() -> None:
    _execute_all(tables.ALL)
    _execute_all(indexes.ALL)


def downgrade() -> None:
    for table in ("site_config", "support_messages", "saved_artifacts", "accounts"):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE;")
