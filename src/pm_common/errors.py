"""Unified error codes and custom exceptions.

Error code ranges:
  2xxx: Wallet / Account
  3xxx: Scenario
  4xxx: Shop
  5xxx: Rewards
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        # Set once a corrective ledger entry has been written for this failure
        self.compensated = False
        super().__init__(message)


# --- 2xxx: Wallet / Account ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: required {required} AP, available {available} AP",
            402,
        )


class AccountNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}", 404)


class InvalidAmountError(AppError):
    def __init__(self, detail: str = "Amount must be a non-zero integer") -> None:
        super().__init__(2003, detail, 422)


class AccountExistsError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2004, f"Account already exists for user {user_id}", 409)


# --- 3xxx: Scenario ---

class ScenarioNotFoundError(AppError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(3001, f"Scenario not found: {scenario_id}", 404)


class ScenarioNotActiveError(AppError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(3002, f"Scenario is not active: {scenario_id}", 422)


class AlreadyResolvedError(AppError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(3003, f"Scenario already resolved: {scenario_id}", 409)


class ScenarioNotResolvableError(AppError):
    def __init__(self, scenario_id: str, status: str) -> None:
        super().__init__(
            3004, f"Scenario {scenario_id} in status {status} cannot be settled", 409
        )


class DuplicatePredictionError(AppError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(3005, f"Prediction already placed on scenario {scenario_id}", 409)


class StealNotAllowedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, f"Steal not allowed: {detail}", 422)


class ScenarioExistsError(AppError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(3007, f"Scenario already exists: {scenario_id}", 409)


# --- 4xxx: Shop ---

class ItemNotFoundError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(4001, f"Shop item not found: {item_id}", 404)


class StockExhaustedError(AppError):
    def __init__(self, item_id: str, requested: int, available: int | None) -> None:
        super().__init__(
            4002,
            f"Insufficient stock for item {item_id}: requested {requested}, available {available}",
            409,
        )


class LimitExceededError(AppError):
    def __init__(self, item_id: str, max_per_user: int) -> None:
        super().__init__(4003, f"Maximum {max_per_user} units per user for item {item_id}", 422)


# --- 5xxx: Rewards ---

class RewardNotFoundError(AppError):
    def __init__(self, reward_ref: str) -> None:
        super().__init__(5001, f"Reward not found: {reward_ref}", 404)


class AlreadyClaimedError(AppError):
    def __init__(self, reward_ref: str) -> None:
        super().__init__(5002, f"Reward already claimed: {reward_ref}", 409)


class RewardNotCompletedError(AppError):
    def __init__(self, reward_ref: str) -> None:
        super().__init__(5003, f"Reward not completed: {reward_ref}", 422)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, detail, 400)


class UnauthorizedError(AppError):
    def __init__(self) -> None:
        super().__init__(9004, "Missing authenticated user", 401)
