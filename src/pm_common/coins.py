"""Integer arithmetic utilities for AP Coins.

All balances, prices, stakes and payouts are int (whole coins). No float, no Decimal.
"""


def validate_amount(amount: int) -> None:
    """Reject zero and non-integer amounts. Sign is the caller's business."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer number of coins, got {amount!r}")
    if amount == 0:
        raise ValueError("Amount must be non-zero")


def coins_to_display(coins: int) -> str:
    """Format coins for display: 12500 -> '12,500 AP', -300 -> '-300 AP'."""
    if coins < 0:
        return f"-{-coins:,} AP"
    return f"{coins:,} AP"


def proportional_share(stake: int, winning_total: int, pool_total: int) -> int:
    """Pool share for one winning stake, rounded down.

    share = floor(stake * pool_total / winning_total)
    Multiplying before dividing keeps the result exact; the rounding remainder
    stays with the pool.
    """
    if winning_total <= 0:
        raise ValueError("winning_total must be positive")
    if stake < 0 or pool_total < 0:
        raise ValueError("stake and pool_total must be non-negative")
    return (stake * pool_total) // winning_total
