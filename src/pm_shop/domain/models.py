"""Domain models for pm_shop: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ShopItem:
    id: str
    name: str
    price: int
    discount_price: int | None = None
    stock: int | None = None              # None = unlimited
    max_per_user: int | None = None       # None = no per-user cap
    is_active: bool = True

    @property
    def unit_price(self) -> int:
        return self.discount_price if self.discount_price is not None else self.price


@dataclass
class Purchase:
    id: str
    user_id: str
    item_id: str
    quantity: int
    price_paid: int
    status: str = "COMPLETED"             # PurchaseStatus value
    created_at: datetime | None = None


@dataclass
class PurchaseOutcome:
    purchase_id: str
    item_id: str
    quantity: int
    total_price: int
    new_balance: int
    was_free: bool
    owned_quantity: int
