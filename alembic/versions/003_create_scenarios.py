"""003: create scenarios, predictions and scenario_payouts tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-13
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE scenarios (
            id                  VARCHAR(64)     PRIMARY KEY,
            creator_id          VARCHAR(64)     NOT NULL,
            current_holder_id   VARCHAR(64),
            status              VARCHAR(20)     NOT NULL DEFAULT 'DRAFT',
            result              VARCHAR(3),
            theft_pool          BIGINT          NOT NULL DEFAULT 0,
            steal_count         INT             NOT NULL DEFAULT 0,
            can_be_stolen       BOOLEAN         NOT NULL DEFAULT TRUE,
            protected_until     TIMESTAMPTZ,
            pool_remainder      BIGINT          NOT NULL DEFAULT 0,
            resolved_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_scenarios_status CHECK (
                status IN ('DRAFT', 'ACTIVE', 'CLOSED', 'RESOLVED', 'CANCELLED')
            ),
            CONSTRAINT ck_scenarios_result CHECK (result IS NULL OR result IN ('YES', 'NO')),
            CONSTRAINT ck_scenarios_theft_pool_gte_0 CHECK (theft_pool >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_scenarios_updated_at
            BEFORE UPDATE ON scenarios
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("CREATE INDEX idx_scenarios_status ON scenarios (status);")

    op.execute("""
        CREATE TABLE predictions (
            id              VARCHAR(64)     PRIMARY KEY,
            scenario_id     VARCHAR(64)     NOT NULL REFERENCES scenarios (id),
            user_id         VARCHAR(64)     NOT NULL,
            side            VARCHAR(3)      NOT NULL,
            amount          BIGINT          NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            payout          BIGINT          NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_predictions_scenario_user UNIQUE (scenario_id, user_id),
            CONSTRAINT ck_predictions_side CHECK (side IN ('YES', 'NO')),
            CONSTRAINT ck_predictions_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_predictions_status CHECK (
                status IN ('PENDING', 'WON', 'LOST', 'REFUNDED')
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_predictions_updated_at
            BEFORE UPDATE ON predictions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE scenario_payouts (
            id                          BIGSERIAL       PRIMARY KEY,
            scenario_id                 VARCHAR(64)     NOT NULL REFERENCES scenarios (id),
            recipient_id                VARCHAR(64)     NOT NULL,
            payout_amount               BIGINT          NOT NULL,
            pool_total                  BIGINT          NOT NULL,
            theft_pool_at_resolution    BIGINT          NOT NULL DEFAULT 0,
            scenario_result             VARCHAR(3)      NOT NULL,
            was_fulfilled               BOOLEAN         NOT NULL,
            status                      VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            created_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            processed_at                TIMESTAMPTZ,
            CONSTRAINT uq_scenario_payouts_recipient UNIQUE (scenario_id, recipient_id),
            CONSTRAINT ck_scenario_payouts_status CHECK (
                status IN ('PENDING', 'COMPLETED', 'FAILED')
            ),
            CONSTRAINT ck_scenario_payouts_amount_gte_0 CHECK (payout_amount >= 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_scenario_payouts_recipient
        ON scenario_payouts (recipient_id, created_at DESC);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS scenario_payouts CASCADE;")
    op.execute("DROP TABLE IF EXISTS predictions CASCADE;")
    op.execute("DROP TABLE IF EXISTS scenarios CASCADE;")
