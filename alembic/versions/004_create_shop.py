"""004: create shop_items, user_purchases and user_inventory tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE shop_items (
            id              VARCHAR(64)     PRIMARY KEY,
            name            VARCHAR(200)    NOT NULL,
            price           BIGINT          NOT NULL,
            discount_price  BIGINT,
            stock           INT,
            max_per_user    INT,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_shop_items_price_gte_0 CHECK (price >= 0),
            CONSTRAINT ck_shop_items_discount_gte_0 CHECK (discount_price IS NULL OR discount_price >= 0),
            CONSTRAINT ck_shop_items_stock_gte_0 CHECK (stock IS NULL OR stock >= 0),
            CONSTRAINT ck_shop_items_max_per_user_gt_0 CHECK (max_per_user IS NULL OR max_per_user > 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_shop_items_updated_at
            BEFORE UPDATE ON shop_items
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE user_purchases (
            id              VARCHAR(64)     PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            item_id         VARCHAR(64)     NOT NULL REFERENCES shop_items (id),
            quantity        INT             NOT NULL,
            price_paid      BIGINT          NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'COMPLETED',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_user_purchases_quantity_gt_0 CHECK (quantity > 0),
            CONSTRAINT ck_user_purchases_status CHECK (status IN ('COMPLETED', 'REFUNDED'))
        );
    """)
    op.execute("CREATE INDEX idx_user_purchases_user ON user_purchases (user_id, created_at DESC);")

    op.execute("""
        CREATE TABLE user_inventory (
            user_id         VARCHAR(64)     NOT NULL,
            item_id         VARCHAR(64)     NOT NULL REFERENCES shop_items (id),
            quantity        INT             NOT NULL DEFAULT 0,
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, item_id),
            CONSTRAINT ck_user_inventory_quantity_gte_0 CHECK (quantity >= 0)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_inventory CASCADE;")
    op.execute("DROP TABLE IF EXISTS user_purchases CASCADE;")
    op.execute("DROP TABLE IF EXISTS shop_items CASCADE;")
