"""Tests for pm_common enums, errors, Result, response envelope and id generator."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from src.pm_common.datetime_utils import extend_window, hours_from_now, is_active, utc_now
from src.pm_common.enums import ScenarioStatus, TransactionType
from src.pm_common.errors import (
    AppError,
    InsufficientFundsError,
    InternalError,
    ScenarioNotFoundError,
    StockExhaustedError,
)
from src.pm_common.id_generator import BusinessIdGenerator, generate_id
from src.pm_common.response import error_response, result_response, success_response
from src.pm_common.result import Result, capture


class TestEnums:
    def test_transaction_types_match_check_constraint(self) -> None:
        assert {t.value for t in TransactionType} == {
            "PURCHASE", "SCENARIO_PAYOUT", "SCENARIO_STEAL", "SCENARIO_PROTECT",
            "ITEM_PURCHASE", "REFUND", "ADMIN_ADJUSTMENT", "BONUS",
            "PREDICTION_BET", "PREDICTION_WIN",
        }

    def test_str_enum(self) -> None:
        assert ScenarioStatus.ACTIVE == "ACTIVE"
        assert isinstance(TransactionType.BONUS, str)


class TestErrors:
    def test_base_error_defaults_to_500(self) -> None:
        err = AppError(code=9002, message="boom")
        assert err.http_status == 500
        assert isinstance(err, Exception)

    def test_insufficient_funds(self) -> None:
        err = InsufficientFundsError(required=500, available=120)
        assert err.code == 2001
        assert err.http_status == 402
        assert "500" in err.message and "120" in err.message

    def test_scenario_not_found(self) -> None:
        err = ScenarioNotFoundError("sc-1")
        assert (err.code, err.http_status) == (3001, 404)

    def test_stock_exhausted(self) -> None:
        err = StockExhaustedError("hat", 3, 1)
        assert (err.code, err.http_status) == (4002, 409)


class TestResult:
    def test_ok(self) -> None:
        r = Result.ok(5)
        assert r.success
        assert r.unwrap() == 5

    def test_fail_unwrap_raises(self) -> None:
        r: Result[int] = Result.fail(ScenarioNotFoundError("x"))
        assert not r.success
        with pytest.raises(ScenarioNotFoundError):
            r.unwrap()

    async def test_capture_app_error(self) -> None:
        async def op() -> int:
            raise InsufficientFundsError(10, 0)

        r = await capture(op())
        assert isinstance(r.error, InsufficientFundsError)

    async def test_capture_storage_error_becomes_internal(self) -> None:
        async def op() -> int:
            raise OperationalError("SELECT 1", {}, Exception("down"))

        r = await capture(op())
        assert isinstance(r.error, InternalError)

    async def test_capture_unexpected_error_propagates(self) -> None:
        async def op() -> int:
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await capture(op())


class TestResponse:
    def test_success(self) -> None:
        resp = success_response({"x": 1})
        assert resp.code == 0
        assert resp.data == {"x": 1}
        assert resp.request_id.startswith("req_")

    def test_error(self) -> None:
        resp = error_response(2001, "Insufficient funds")
        assert resp.code == 2001
        assert resp.data is None

    def test_result_response_uses_request_id(self) -> None:
        request = MagicMock()
        request.state.request_id = "req_abc"
        resp = result_response(Result.ok({"balance": 5}), request)
        assert resp.request_id == "req_abc"
        assert resp.data == {"balance": 5}

    def test_result_response_raises_error(self) -> None:
        with pytest.raises(ScenarioNotFoundError):
            result_response(Result.fail(ScenarioNotFoundError("x")), MagicMock())


class TestIds:
    def test_prefix(self) -> None:
        assert generate_id("pur").startswith("pur_")

    def test_unique_and_sorted(self) -> None:
        gen = BusinessIdGenerator()
        ids = [gen.next_id("pred") for _ in range(2000)]
        assert len(set(ids)) == 2000
        assert ids == sorted(ids)


class TestDatetimes:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo is not None

    def test_hours_from_now(self) -> None:
        now = utc_now()
        assert (hours_from_now(6, now) - now).total_seconds() == 6 * 3600

    def test_is_active(self) -> None:
        now = utc_now()
        assert is_active(hours_from_now(1, now), now) is True
        assert is_active(now, now) is False
        assert is_active(None, now) is False

    def test_extend_window_stacks_on_open_window(self) -> None:
        now = utc_now()
        until = hours_from_now(2, now)
        assert extend_window(until, 6, now) == hours_from_now(8, now)

    def test_extend_window_restarts_expired(self) -> None:
        now = utc_now()
        expired = hours_from_now(-3, now)
        assert extend_window(expired, 6, now) == hours_from_now(6, now)
        assert extend_window(None, 6, now) == hours_from_now(6, now)
