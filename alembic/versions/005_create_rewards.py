"""005: create reward_progress and user_progress tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE reward_progress (
            id                  VARCHAR(64)     NOT NULL,
            user_id             VARCHAR(64)     NOT NULL,
            source              VARCHAR(20)     NOT NULL,
            ap_coins            BIGINT          NOT NULL DEFAULT 0,
            xp                  INT             NOT NULL DEFAULT 0,
            achievement_points  INT             NOT NULL DEFAULT 0,
            is_completed        BOOLEAN         NOT NULL DEFAULT FALSE,
            is_claimed          BOOLEAN         NOT NULL DEFAULT FALSE,
            claimed_at          TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (id, user_id),
            CONSTRAINT ck_reward_progress_source CHECK (source IN ('MISSION', 'ACHIEVEMENT')),
            CONSTRAINT ck_reward_progress_ap_coins_gte_0 CHECK (ap_coins >= 0),
            CONSTRAINT ck_reward_progress_claimed_completed CHECK (NOT is_claimed OR is_completed)
        );
    """)

    op.execute("""
        CREATE TABLE user_progress (
            user_id             VARCHAR(64)     PRIMARY KEY,
            xp                  BIGINT          NOT NULL DEFAULT 0,
            achievement_points  BIGINT          NOT NULL DEFAULT 0,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE;")
    op.execute("DROP TABLE IF EXISTS reward_progress CASCADE;")
