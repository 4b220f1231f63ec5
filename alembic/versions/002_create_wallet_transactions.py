"""002: create wallet_transactions table

Revision ID: 002
Revises: 001
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallet_transactions (
            id                  BIGSERIAL       PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL REFERENCES accounts (user_id),
            transaction_type    VARCHAR(30)     NOT NULL,
            amount              BIGINT          NOT NULL,
            balance_after       BIGINT          NOT NULL,
            reference_type      VARCHAR(30),
            reference_id        VARCHAR(64),
            description         VARCHAR(500),
            metadata            JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallet_tx_type CHECK (
                transaction_type IN (
                    'PURCHASE',
                    'SCENARIO_PAYOUT', 'SCENARIO_STEAL', 'SCENARIO_PROTECT',
                    'ITEM_PURCHASE', 'REFUND',
                    'ADMIN_ADJUSTMENT', 'BONUS',
                    'PREDICTION_BET', 'PREDICTION_WIN'
                )
            ),
            CONSTRAINT ck_wallet_tx_amount_nonzero CHECK (amount <> 0)
        );
    """)
    op.execute("CREATE INDEX idx_wallet_tx_user_id ON wallet_transactions (user_id, id DESC);")
    # Idempotency key for referenced transactions
    op.execute("""
        CREATE UNIQUE INDEX uq_wallet_tx_reference
        ON wallet_transactions (user_id, reference_type, reference_id, transaction_type)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_wallet_tx_type ON wallet_transactions (transaction_type, created_at);")
    op.execute("COMMENT ON TABLE wallet_transactions IS 'AP Coins ledger: append-only, never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallet_transactions CASCADE;")
