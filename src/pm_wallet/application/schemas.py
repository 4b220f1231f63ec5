"""Pydantic schemas and cursor utilities for pm_wallet API."""

import base64
import json
from typing import Any

from pydantic import BaseModel, Field

from src.pm_common.coins import coins_to_display
from src.pm_common.enums import TransactionType

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RecordTransactionRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    transaction_type: TransactionType
    amount: int = Field(..., description="Signed AP Coins: negative=debit, positive=credit")
    description: str | None = Field(None, max_length=500)
    reference_type: str | None = Field(None, max_length=30)
    reference_id: str | None = Field(None, max_length=64)
    metadata: dict[str, Any] = Field(default_factory=dict)


class OpenAccountRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    has_unlimited_balance: bool = False


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WalletStatsResponse(BaseModel):
    user_id: str
    balance: int
    balance_display: str
    available_balance: int
    lifetime_purchased: int
    lifetime_earned: int
    lifetime_spent: int
    has_unlimited_balance: bool

    @classmethod
    def from_account(
        cls,
        user_id: str,
        balance: int,
        lifetime_purchased: int,
        lifetime_earned: int,
        lifetime_spent: int,
        has_unlimited_balance: bool,
    ) -> "WalletStatsResponse":
        return cls(
            user_id=user_id,
            balance=balance,
            balance_display=coins_to_display(balance),
            available_balance=balance,
            lifetime_purchased=lifetime_purchased,
            lifetime_earned=lifetime_earned,
            lifetime_spent=lifetime_spent,
            has_unlimited_balance=has_unlimited_balance,
        )


class RecordTransactionResponse(BaseModel):
    transaction_id: int
    new_balance: int
    new_balance_display: str
    idempotent_hit: bool


class TransactionItem(BaseModel):
    id: int
    transaction_type: str
    amount: int
    amount_display: str
    balance_after: int
    reference_type: str | None
    reference_id: str | None
    description: str | None
    metadata: dict[str, Any]
    created_at: str  # ISO8601 string


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class LedgerAuditResponse(BaseModel):
    ok: bool
    violations: list[str]
