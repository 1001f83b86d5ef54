"""Create the kv_store table for verification tokens.

Revision ID: 001
Revises:
Create Date: 2026-02-04
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # One row per outstanding token, keyed "<purpose>:<identifier>"
    op.execute("""
        CREATE TABLE kv_store (
            key TEXT PRIMARY KEY,
            value JSONB NOT NULL
        );
    """)

    # Prefix scans (key LIKE 'email_verification:%') need a pattern-ops index;
    # the primary key index cannot serve LIKE under non-C collations.
    op.execute("CREATE INDEX idx_kv_store_key_prefix ON kv_store (key text_pattern_ops);")

    # Only the service role touches tokens
    op.execute("ALTER TABLE kv_store ENABLE ROW LEVEL SECURITY;")


def downgrade():
    op.execute("DROP TABLE IF EXISTS kv_store CASCADE;")
