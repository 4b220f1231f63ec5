"""ShopApplicationService: transaction boundary around PurchaseProcessor."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.coins import coins_to_display
from src.pm_common.database import commit_result
from src.pm_common.errors import ItemNotFoundError
from src.pm_common.result import Result
from src.pm_shop.application.schemas import PurchaseResponse, ShopItemResponse
from src.pm_shop.domain.processor import PurchaseProcessor
from src.pm_shop.domain.repository import ShopRepositoryProtocol
from src.pm_shop.infrastructure.persistence import ShopRepository
from src.pm_wallet.domain.recorder import TransactionRecorder
from src.pm_wallet.domain.repository import LedgerStoreProtocol
from src.pm_wallet.infrastructure.persistence import LedgerStore


class ShopApplicationService:
    def __init__(
        self,
        repo: ShopRepositoryProtocol | None = None,
        store: LedgerStoreProtocol | None = None,
    ) -> None:
        self._repo: ShopRepositoryProtocol = repo or ShopRepository()
        self._processor = PurchaseProcessor(self._repo, TransactionRecorder(store or LedgerStore()))

    async def get_item(self, db: AsyncSession, item_id: str) -> Result[ShopItemResponse]:
        item = await self._repo.get_item(db, item_id)
        if item is None or not item.is_active:
            return Result.fail(ItemNotFoundError(item_id))
        return Result.ok(ShopItemResponse.from_domain(item))

    async def purchase(
        self, db: AsyncSession, user_id: str, item_id: str, quantity: int
    ) -> Result[PurchaseResponse]:
        outcome = await self._processor.purchase(db, user_id, item_id, quantity)
        if not outcome.success:
            error = outcome.error
            assert error is not None
            if error.compensated:
                # Keep the debit/refund pair on the ledger
                committed = await commit_result(db, Result.ok(None))
                if not committed.success:
                    return committed
                return Result.fail(error)
            return await commit_result(db, Result.fail(error))
        o = outcome.value
        assert o is not None
        return await commit_result(
            db,
            Result.ok(
                PurchaseResponse(
                    purchase_id=o.purchase_id,
                    item_id=o.item_id,
                    quantity=o.quantity,
                    total_price=o.total_price,
                    new_balance=o.new_balance,
                    new_balance_display=coins_to_display(o.new_balance),
                    was_free=o.was_free,
                    owned_quantity=o.owned_quantity,
                )
            ),
        )
