"""ScenarioRepository: PostgreSQL implementation of ScenarioRepositoryProtocol.

Every state change is a conditional UPDATE ... RETURNING; 0 rows means the
row was not in the expected state. Transaction ownership stays with the
caller.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_scenario.domain.models import Payout, Prediction, Scenario

_SCENARIO_COLUMNS = """
    id, creator_id, current_holder_id, status, result, theft_pool, steal_count,
    can_be_stolen, protected_until, pool_remainder, resolved_at, created_at
"""

_PREDICTION_COLUMNS = "id, scenario_id, user_id, side, amount, status, payout, created_at"

_PAYOUT_COLUMNS = """
    id, scenario_id, recipient_id, payout_amount, pool_total, theft_pool_at_resolution,
    scenario_result, was_fulfilled, status, created_at, processed_at
"""

_GET_SCENARIO_SQL = text(f"SELECT {_SCENARIO_COLUMNS} FROM scenarios WHERE id = :scenario_id")

_CREATE_SCENARIO_SQL = text(f"""
    INSERT INTO scenarios (id, creator_id, current_holder_id, status)
    VALUES (:scenario_id, :creator_id, :creator_id, :status)
    RETURNING {_SCENARIO_COLUMNS}
""")

_OPEN_SQL = text(f"""
    UPDATE scenarios SET status = 'ACTIVE', updated_at = NOW()
    WHERE id = :scenario_id AND status = 'DRAFT'
    RETURNING {_SCENARIO_COLUMNS}
""")

_CLOSE_SQL = text(f"""
    UPDATE scenarios SET status = 'CLOSED', updated_at = NOW()
    WHERE id = :scenario_id AND status = 'ACTIVE'
    RETURNING {_SCENARIO_COLUMNS}
""")

_RESOLVE_GATE_SQL = text(f"""
    UPDATE scenarios
    SET status = 'RESOLVED', result = :result, resolved_at = NOW(), updated_at = NOW()
    WHERE id = :scenario_id AND status IN ('ACTIVE', 'CLOSED')
    RETURNING {_SCENARIO_COLUMNS}
""")

_CANCEL_GATE_SQL = text(f"""
    UPDATE scenarios
    SET status = 'CANCELLED', resolved_at = NOW(), updated_at = NOW()
    WHERE id = :scenario_id AND status IN ('DRAFT', 'ACTIVE', 'CLOSED')
    RETURNING {_SCENARIO_COLUMNS}
""")

_SET_REMAINDER_SQL = text("""
    UPDATE scenarios SET pool_remainder = :remainder, updated_at = NOW()
    WHERE id = :scenario_id
""")

_LIST_PREDICTIONS_SQL = text(f"""
    SELECT {_PREDICTION_COLUMNS} FROM predictions
    WHERE scenario_id = :scenario_id
    ORDER BY created_at, id
""")

_INSERT_PREDICTION_SQL = text(f"""
    INSERT INTO predictions (id, scenario_id, user_id, side, amount)
    VALUES (:prediction_id, :scenario_id, :user_id, :side, :amount)
    ON CONFLICT (scenario_id, user_id) DO NOTHING
    RETURNING {_PREDICTION_COLUMNS}
""")

_SETTLE_PREDICTION_SQL = text("""
    UPDATE predictions SET status = :status, payout = :payout, updated_at = NOW()
    WHERE id = :prediction_id AND status = 'PENDING'
    RETURNING id
""")

_INSERT_PAYOUT_SQL = text(f"""
    INSERT INTO scenario_payouts
        (scenario_id, recipient_id, payout_amount, pool_total, theft_pool_at_resolution,
         scenario_result, was_fulfilled, status, processed_at)
    VALUES
        (:scenario_id, :recipient_id, :payout_amount, :pool_total, :theft_pool_at_resolution,
         :scenario_result, :was_fulfilled, :status, NOW())
    ON CONFLICT (scenario_id, recipient_id) DO NOTHING
    RETURNING {_PAYOUT_COLUMNS}
""")

_LIST_PAYOUTS_SQL = text(f"""
    SELECT {_PAYOUT_COLUMNS} FROM scenario_payouts
    WHERE recipient_id = :recipient_id
      AND (CAST(:fulfilled AS BOOLEAN) IS NULL OR was_fulfilled = :fulfilled)
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_RECORD_STEAL_SQL = text(f"""
    UPDATE scenarios
    SET current_holder_id = :thief_id,
        steal_count       = steal_count + 1,
        theft_pool        = theft_pool + :price,
        updated_at        = NOW()
    WHERE id = :scenario_id
      AND status = 'ACTIVE'
      AND can_be_stolen
      AND steal_count = :expected_steal_count
      AND (protected_until IS NULL OR protected_until <= :now)
    RETURNING {_SCENARIO_COLUMNS}
""")

_APPLY_SHIELD_SQL = text(f"""
    UPDATE scenarios
    SET protected_until = :protected_until, updated_at = NOW()
    WHERE id = :scenario_id AND status = 'ACTIVE' AND current_holder_id = :holder_id
    RETURNING {_SCENARIO_COLUMNS}
""")


def _row_to_scenario(row: object) -> Scenario:
    return Scenario(
        id=row.id,  # type: ignore[attr-defined]
        creator_id=row.creator_id,  # type: ignore[attr-defined]
        current_holder_id=row.current_holder_id,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        result=row.result,  # type: ignore[attr-defined]
        theft_pool=row.theft_pool,  # type: ignore[attr-defined]
        steal_count=row.steal_count,  # type: ignore[attr-defined]
        can_be_stolen=row.can_be_stolen,  # type: ignore[attr-defined]
        protected_until=row.protected_until,  # type: ignore[attr-defined]
        pool_remainder=row.pool_remainder,  # type: ignore[attr-defined]
        resolved_at=row.resolved_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_prediction(row: object) -> Prediction:
    return Prediction(
        id=row.id,  # type: ignore[attr-defined]
        scenario_id=row.scenario_id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        side=row.side,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        payout=row.payout,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_payout(row: object) -> Payout:
    return Payout(
        id=row.id,  # type: ignore[attr-defined]
        scenario_id=row.scenario_id,  # type: ignore[attr-defined]
        recipient_id=row.recipient_id,  # type: ignore[attr-defined]
        payout_amount=row.payout_amount,  # type: ignore[attr-defined]
        pool_total=row.pool_total,  # type: ignore[attr-defined]
        theft_pool_at_resolution=row.theft_pool_at_resolution,  # type: ignore[attr-defined]
        scenario_result=row.scenario_result,  # type: ignore[attr-defined]
        was_fulfilled=row.was_fulfilled,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        processed_at=row.processed_at,  # type: ignore[attr-defined]
    )


class ScenarioRepository:
    async def _one_scenario(
        self, db: AsyncSession, sql: object, params: dict[str, object]
    ) -> Scenario | None:
        row = (await db.execute(sql, params)).fetchone()  # type: ignore[arg-type]
        return _row_to_scenario(row) if row else None

    async def get_scenario(self, db: AsyncSession, scenario_id: str) -> Scenario | None:
        return await self._one_scenario(db, _GET_SCENARIO_SQL, {"scenario_id": scenario_id})

    async def create_scenario(
        self, db: AsyncSession, scenario_id: str, creator_id: str, status: str
    ) -> Scenario:
        row = (
            await db.execute(
                _CREATE_SCENARIO_SQL,
                {"scenario_id": scenario_id, "creator_id": creator_id, "status": status},
            )
        ).fetchone()
        return _row_to_scenario(row)

    async def open_scenario(self, db: AsyncSession, scenario_id: str) -> Scenario | None:
        return await self._one_scenario(db, _OPEN_SQL, {"scenario_id": scenario_id})

    async def close_scenario(self, db: AsyncSession, scenario_id: str) -> Scenario | None:
        return await self._one_scenario(db, _CLOSE_SQL, {"scenario_id": scenario_id})

    async def resolve_gate(
        self, db: AsyncSession, scenario_id: str, result: str
    ) -> Scenario | None:
        return await self._one_scenario(
            db, _RESOLVE_GATE_SQL, {"scenario_id": scenario_id, "result": result}
        )

    async def cancel_gate(self, db: AsyncSession, scenario_id: str) -> Scenario | None:
        return await self._one_scenario(db, _CANCEL_GATE_SQL, {"scenario_id": scenario_id})

    async def set_pool_remainder(
        self, db: AsyncSession, scenario_id: str, remainder: int
    ) -> None:
        await db.execute(_SET_REMAINDER_SQL, {"scenario_id": scenario_id, "remainder": remainder})

    async def list_predictions(
        self, db: AsyncSession, scenario_id: str
    ) -> list[Prediction]:
        rows = (await db.execute(_LIST_PREDICTIONS_SQL, {"scenario_id": scenario_id})).fetchall()
        return [_row_to_prediction(row) for row in rows]

    async def insert_prediction(
        self,
        db: AsyncSession,
        prediction_id: str,
        scenario_id: str,
        user_id: str,
        side: str,
        amount: int,
    ) -> Prediction | None:
        row = (
            await db.execute(
                _INSERT_PREDICTION_SQL,
                {
                    "prediction_id": prediction_id,
                    "scenario_id": scenario_id,
                    "user_id": user_id,
                    "side": side,
                    "amount": amount,
                },
            )
        ).fetchone()
        return _row_to_prediction(row) if row else None

    async def settle_prediction(
        self, db: AsyncSession, prediction_id: str, status: str, payout: int
    ) -> bool:
        result = await db.execute(
            _SETTLE_PREDICTION_SQL,
            {"prediction_id": prediction_id, "status": status, "payout": payout},
        )
        return result.fetchone() is not None

    async def insert_payout(self, db: AsyncSession, payout: Payout) -> Payout | None:
        row = (
            await db.execute(
                _INSERT_PAYOUT_SQL,
                {
                    "scenario_id": payout.scenario_id,
                    "recipient_id": payout.recipient_id,
                    "payout_amount": payout.payout_amount,
                    "pool_total": payout.pool_total,
                    "theft_pool_at_resolution": payout.theft_pool_at_resolution,
                    "scenario_result": payout.scenario_result,
                    "was_fulfilled": payout.was_fulfilled,
                    "status": payout.status,
                },
            )
        ).fetchone()
        return _row_to_payout(row) if row else None

    async def list_payouts(
        self, db: AsyncSession, recipient_id: str, fulfilled: bool | None, limit: int
    ) -> list[Payout]:
        rows = (
            await db.execute(
                _LIST_PAYOUTS_SQL,
                {"recipient_id": recipient_id, "fulfilled": fulfilled, "limit": limit},
            )
        ).fetchall()
        return [_row_to_payout(row) for row in rows]

    async def record_steal(
        self,
        db: AsyncSession,
        scenario_id: str,
        thief_id: str,
        expected_steal_count: int,
        price: int,
        now: datetime,
    ) -> Scenario | None:
        return await self._one_scenario(
            db,
            _RECORD_STEAL_SQL,
            {
                "scenario_id": scenario_id,
                "thief_id": thief_id,
                "expected_steal_count": expected_steal_count,
                "price": price,
                "now": now,
            },
        )

    async def apply_shield(
        self,
        db: AsyncSession,
        scenario_id: str,
        holder_id: str,
        protected_until: datetime,
    ) -> Scenario | None:
        return await self._one_scenario(
            db,
            _APPLY_SHIELD_SQL,
            {
                "scenario_id": scenario_id,
                "holder_id": holder_id,
                "protected_until": protected_until,
            },
        )
