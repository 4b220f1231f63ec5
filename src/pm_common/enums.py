"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class TransactionType(str, Enum):
    # Coins bought with real money
    PURCHASE = "PURCHASE"
    # Scenario settlement
    SCENARIO_PAYOUT = "SCENARIO_PAYOUT"
    SCENARIO_STEAL = "SCENARIO_STEAL"
    SCENARIO_PROTECT = "SCENARIO_PROTECT"
    # Shop
    ITEM_PURCHASE = "ITEM_PURCHASE"
    REFUND = "REFUND"
    # Manual / rewards
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"
    BONUS = "BONUS"
    # Staking
    PREDICTION_BET = "PREDICTION_BET"
    PREDICTION_WIN = "PREDICTION_WIN"


class ReferenceType(str, Enum):
    ACCOUNT = "account"
    SCENARIO = "scenario"
    SCENARIO_STEAL = "scenario_steal"
    SCENARIO_SHIELD = "scenario_shield"
    PREDICTION = "prediction"
    PURCHASE = "purchase"
    REWARD = "reward"
    ADMIN = "admin"


class ScenarioStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class ScenarioResult(str, Enum):
    YES = "YES"
    NO = "NO"


class PredictionStatus(str, Enum):
    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"
    REFUNDED = "REFUNDED"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PurchaseStatus(str, Enum):
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"


class RewardSource(str, Enum):
    MISSION = "MISSION"
    ACHIEVEMENT = "ACHIEVEMENT"


class ShieldType(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ULTIMATE = "ultimate"
