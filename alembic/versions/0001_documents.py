"""documents table for orders, billing statements, transactions, bookings

Revision ID: 0001_documents
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_documents"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.documents (
            collection text NOT NULL,
            doc_id text NOT NULL,
            data jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamp with time zone DEFAULT now() NOT NULL,
            updated_at timestamp with time zone DEFAULT now() NOT NULL,
            CONSTRAINT documents_pkey PRIMARY KEY (collection, doc_id),
            CONSTRAINT documents_collection_check CHECK (
                collection IN ('orders', 'billing_statements', 'transactions', 'bookings')
            )
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_documents_user_id ON app.documents USING btree (collection, (data->>'user_id'));"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_documents_booking_id ON app.documents USING btree ((data->>'booking_id'));"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.documents;")
