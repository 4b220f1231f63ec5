"""Repository Protocol for the shop catalogue, inventory and purchases."""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_shop.domain.models import Purchase, ShopItem


class ShopRepositoryProtocol(Protocol):
    def savepoint(self, db: AsyncSession) -> AbstractAsyncContextManager[Any]: ...

    async def get_item(self, db: AsyncSession, item_id: str) -> ShopItem | None: ...

    async def get_owned_quantity(self, db: AsyncSession, user_id: str, item_id: str) -> int: ...

    async def decrement_stock(self, db: AsyncSession, item_id: str, quantity: int) -> bool:
        """Atomic `stock -= quantity` guarded by `stock >= quantity`.

        Unlimited stock always succeeds. False means the stock race was lost.
        """
        ...

    async def add_inventory(
        self,
        db: AsyncSession,
        user_id: str,
        item_id: str,
        quantity: int,
        max_per_user: int | None,
    ) -> int | None:
        """Upsert `quantity += quantity`; None if the cap would be exceeded."""
        ...

    async def insert_purchase(self, db: AsyncSession, purchase: Purchase) -> Purchase: ...
