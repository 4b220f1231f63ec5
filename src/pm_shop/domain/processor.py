"""PurchaseProcessor: shop purchases against stock and per-user limits.

Checks run before any coin moves, so a rejected purchase never touches the
balance. Once the debit has been recorded, the stock decrement, inventory
grant and purchase row run inside one savepoint. If that fails, a REFUND for
the same purchase and a REFUNDED purchase row are recorded, and the returned
error is flagged `compensated` so the transaction is committed, not rolled back.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import PurchaseStatus, ReferenceType, TransactionType
from src.pm_common.errors import (
    AccountNotFoundError,
    AppError,
    InternalError,
    ItemNotFoundError,
    LimitExceededError,
    StockExhaustedError,
    ValidationError,
)
from src.pm_common.id_generator import generate_id
from src.pm_common.result import Result, capture
from src.pm_shop.domain.models import Purchase, PurchaseOutcome, ShopItem
from src.pm_shop.domain.repository import ShopRepositoryProtocol
from src.pm_wallet.domain.recorder import TransactionRecorder

logger = logging.getLogger(__name__)


class PurchaseProcessor:
    def __init__(self, repo: ShopRepositoryProtocol, recorder: TransactionRecorder) -> None:
        self._repo = repo
        self._recorder = recorder

    async def purchase(
        self, db: AsyncSession, user_id: str, item_id: str, quantity: int = 1
    ) -> Result[PurchaseOutcome]:
        return await capture(self._purchase(db, user_id, item_id, quantity))

    async def _purchase(
        self, db: AsyncSession, user_id: str, item_id: str, quantity: int
    ) -> PurchaseOutcome:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"Quantity must be a positive integer, got {quantity!r}")

        item = await self._repo.get_item(db, item_id)
        if item is None or not item.is_active:
            raise ItemNotFoundError(item_id)
        if item.stock is not None and item.stock < quantity:
            raise StockExhaustedError(item_id, quantity, item.stock)

        owned = await self._repo.get_owned_quantity(db, user_id, item_id)
        if item.max_per_user is not None and owned + quantity > item.max_per_user:
            raise LimitExceededError(item_id, item.max_per_user)

        account = await self._recorder.get_account(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)

        total = item.unit_price * quantity
        purchase_id = generate_id("pur")
        new_balance = account.balance
        if total > 0:
            debit = await self._recorder.apply(
                db,
                user_id,
                TransactionType.ITEM_PURCHASE,
                -total,
                description=f"Purchase {quantity} x {item.name}",
                reference_type=ReferenceType.PURCHASE.value,
                reference_id=purchase_id,
                metadata={"item_id": item_id, "quantity": quantity, "unit_price": item.unit_price},
            )
            new_balance = debit.new_balance

        try:
            owned_after = await self._fulfil(db, user_id, item, quantity, purchase_id, total)
        except (AppError, SQLAlchemyError) as exc:
            error = exc if isinstance(exc, AppError) else InternalError("Purchase fulfilment failed")
            await self._compensate(db, user_id, item, quantity, purchase_id, total, error)
            raise error from exc

        logger.info(
            "Purchase %s: user=%s item=%s qty=%d total=%d free=%s",
            purchase_id, user_id, item_id, quantity, total, account.has_unlimited_balance,
        )
        return PurchaseOutcome(
            purchase_id=purchase_id,
            item_id=item_id,
            quantity=quantity,
            total_price=total,
            new_balance=new_balance,
            was_free=account.has_unlimited_balance,
            owned_quantity=owned_after,
        )

    async def _fulfil(
        self,
        db: AsyncSession,
        user_id: str,
        item: ShopItem,
        quantity: int,
        purchase_id: str,
        total: int,
    ) -> int:
        async with self._repo.savepoint(db):
            if not await self._repo.decrement_stock(db, item.id, quantity):
                raise StockExhaustedError(item.id, quantity, None)
            owned = await self._repo.add_inventory(
                db, user_id, item.id, quantity, item.max_per_user
            )
            if owned is None:
                raise LimitExceededError(item.id, item.max_per_user or 0)
            await self._repo.insert_purchase(
                db,
                Purchase(
                    id=purchase_id,
                    user_id=user_id,
                    item_id=item.id,
                    quantity=quantity,
                    price_paid=total,
                    status=PurchaseStatus.COMPLETED.value,
                ),
            )
        return owned

    async def _compensate(
        self,
        db: AsyncSession,
        user_id: str,
        item: ShopItem,
        quantity: int,
        purchase_id: str,
        total: int,
        error: AppError,
    ) -> None:
        """Refund the debit and leave a REFUNDED purchase row behind.

        Marks the error compensated so the caller commits the debit/refund pair
        instead of rolling it back.
        """
        if isinstance(error, InternalError):
            logger.exception("Purchase %s fulfilment failed after debit", purchase_id)
        if total <= 0:
            return
        await self._recorder.apply(
            db,
            user_id,
            TransactionType.REFUND,
            total,
            description=f"Refund: purchase {purchase_id} not fulfilled",
            reference_type=ReferenceType.PURCHASE.value,
            reference_id=purchase_id,
            metadata={"item_id": item.id, "reason": error.message},
        )
        error.compensated = True
        logger.error(
            "Compensated purchase %s: user=%s item=%s refunded=%d reason=%s",
            purchase_id, user_id, item.id, total, error.message,
        )

        try:
            async with self._repo.savepoint(db):
                await self._repo.insert_purchase(
                    db,
                    Purchase(
                        id=purchase_id,
                        user_id=user_id,
                        item_id=item.id,
                        quantity=quantity,
                        price_paid=total,
                        status=PurchaseStatus.REFUNDED.value,
                    ),
                )
        except SQLAlchemyError:
            # The REFUND entry above already balances the ledger
            logger.exception("Could not store REFUNDED row for purchase %s", purchase_id)
