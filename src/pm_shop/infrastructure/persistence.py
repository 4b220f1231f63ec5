"""ShopRepository: PostgreSQL implementation of ShopRepositoryProtocol."""

from contextlib import AbstractAsyncContextManager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_shop.domain.models import Purchase, ShopItem

_GET_ITEM_SQL = text("""
    SELECT id, name, price, discount_price, stock, max_per_user, is_active
    FROM shop_items
    WHERE id = :item_id
""")

_OWNED_SQL = text("""
    SELECT quantity FROM user_inventory
    WHERE user_id = :user_id AND item_id = :item_id
""")

# NULL stock means unlimited: the row always matches
_DECREMENT_STOCK_SQL = text("""
    UPDATE shop_items
    SET stock      = CASE WHEN stock IS NULL THEN NULL ELSE stock - :quantity END,
        updated_at = NOW()
    WHERE id = :item_id AND (stock IS NULL OR stock >= :quantity)
    RETURNING id
""")

_ADD_INVENTORY_SQL = text("""
    INSERT INTO user_inventory (user_id, item_id, quantity)
    VALUES (:user_id, :item_id, :quantity)
    ON CONFLICT (user_id, item_id) DO UPDATE
    SET quantity   = user_inventory.quantity + EXCLUDED.quantity,
        updated_at = NOW()
    WHERE CAST(:max_per_user AS INTEGER) IS NULL
       OR user_inventory.quantity + EXCLUDED.quantity <= :max_per_user
    RETURNING quantity
""")

_INSERT_PURCHASE_SQL = text("""
    INSERT INTO user_purchases (id, user_id, item_id, quantity, price_paid, status)
    VALUES (:id, :user_id, :item_id, :quantity, :price_paid, :status)
    RETURNING id, user_id, item_id, quantity, price_paid, status, created_at
""")


class ShopRepository:
    def savepoint(self, db: AsyncSession) -> AbstractAsyncContextManager[Any]:
        return db.begin_nested()

    async def get_item(self, db: AsyncSession, item_id: str) -> ShopItem | None:
        row = (await db.execute(_GET_ITEM_SQL, {"item_id": item_id})).fetchone()
        if row is None:
            return None
        return ShopItem(
            id=row.id,
            name=row.name,
            price=row.price,
            discount_price=row.discount_price,
            stock=row.stock,
            max_per_user=row.max_per_user,
            is_active=row.is_active,
        )

    async def get_owned_quantity(self, db: AsyncSession, user_id: str, item_id: str) -> int:
        row = (
            await db.execute(_OWNED_SQL, {"user_id": user_id, "item_id": item_id})
        ).fetchone()
        return row.quantity if row else 0

    async def decrement_stock(self, db: AsyncSession, item_id: str, quantity: int) -> bool:
        result = await db.execute(
            _DECREMENT_STOCK_SQL, {"item_id": item_id, "quantity": quantity}
        )
        return result.fetchone() is not None

    async def add_inventory(
        self,
        db: AsyncSession,
        user_id: str,
        item_id: str,
        quantity: int,
        max_per_user: int | None,
    ) -> int | None:
        row = (
            await db.execute(
                _ADD_INVENTORY_SQL,
                {
                    "user_id": user_id,
                    "item_id": item_id,
                    "quantity": quantity,
                    "max_per_user": max_per_user,
                },
            )
        ).fetchone()
        return row.quantity if row else None

    async def insert_purchase(self, db: AsyncSession, purchase: Purchase) -> Purchase:
        row = (
            await db.execute(
                _INSERT_PURCHASE_SQL,
                {
                    "id": purchase.id,
                    "user_id": purchase.user_id,
                    "item_id": purchase.item_id,
                    "quantity": purchase.quantity,
                    "price_paid": purchase.price_paid,
                    "status": purchase.status,
                },
            )
        ).fetchone()
        return Purchase(
            id=row.id,
            user_id=row.user_id,
            item_id=row.item_id,
            quantity=row.quantity,
            price_paid=row.price_paid,
            status=row.status,
            created_at=row.created_at,
        )
