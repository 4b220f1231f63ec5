"""001: create accounts table

Revision ID: 001
Revises:
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE accounts (
            user_id                 VARCHAR(64) PRIMARY KEY,
            balance                 BIGINT      NOT NULL DEFAULT 0,
            lifetime_purchased      BIGINT      NOT NULL DEFAULT 0,
            lifetime_earned         BIGINT      NOT NULL DEFAULT 0,
            lifetime_spent          BIGINT      NOT NULL DEFAULT 0,
            has_unlimited_balance   BOOLEAN     NOT NULL DEFAULT FALSE,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_accounts_balance CHECK (balance >= 0 OR has_unlimited_balance),
            CONSTRAINT ck_accounts_lifetime_gte_0 CHECK (
                lifetime_purchased >= 0 AND lifetime_earned >= 0 AND lifetime_spent >= 0
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_accounts_updated_at
            BEFORE UPDATE ON accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE accounts IS 'AP Coins wallets: integer coins, balance = SUM(wallet_transactions.amount)';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
