"""Pydantic schemas for pm_shop API."""

from pydantic import BaseModel, Field

from src.pm_shop.domain.models import ShopItem


class PurchaseRequest(BaseModel):
    quantity: int = Field(1, ge=1, le=1000)


class ShopItemResponse(BaseModel):
    id: str
    name: str
    price: int
    discount_price: int | None
    unit_price: int
    stock: int | None
    max_per_user: int | None

    @classmethod
    def from_domain(cls, item: ShopItem) -> "ShopItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            price=item.price,
            discount_price=item.discount_price,
            unit_price=item.unit_price,
            stock=item.stock,
            max_per_user=item.max_per_user,
        )


class PurchaseResponse(BaseModel):
    purchase_id: str
    item_id: str
    quantity: int
    total_price: int
    new_balance: int
    new_balance_display: str
    was_free: bool
    owned_quantity: int
