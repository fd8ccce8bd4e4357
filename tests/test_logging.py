"""Tests for structured logging (tea_kernel/logging_config.py) and the
operation envelope CollectionApi logs around every call."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from tea_kernel.exceptions import (
    InternalError,
    InvalidCredentialsError,
    ItemNotFoundError,
    MissingIdentityError,
)
from tea_kernel.logging_config import (
    REDACTED_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from tea_services.collection_api import CollectionApi


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _only(records: list[dict], message: str) -> dict:
    matching = [r for r in records if r["message"] == message]
    assert len(matching) == 1, [r["message"] for r in records]
    return matching[0]


@pytest.fixture
def json_stream():
    """Install a fresh JSON handler; restore the suite's handler afterwards."""
    reset_logging()
    handler, stream = _make_handler()
    configure_logging(handler=handler)
    yield stream
    reset_logging()
    configure_logging(level=logging.DEBUG)


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_line_shape(self, json_stream):
        get_logger("services.ledger").info("stock_adjusted", extra={"sequence": 4})

        (record,) = _parse_all_logs(json_stream)
        assert record["level"] == "INFO"
        assert record["logger"] == "tea_kernel.services.ledger"
        assert record["message"] == "stock_adjusted"
        assert record["sequence"] == 4
        assert "ts" in record

    def test_debug_below_default_level(self, json_stream):
        logger = get_logger("db")
        logger.debug("transaction_started")
        logger.info("engine_initialized")

        assert [r["message"] for r in _parse_all_logs(json_stream)] == ["engine_initialized"]

    def test_request_fields_included(self, json_stream):
        with LogContext.bind(correlation_id="c-1", operation="adjust_stock"):
            get_logger("api").info("inside")
        get_logger("api").info("outside")

        inside, outside = _parse_all_logs(json_stream)
        assert inside["correlation_id"] == "c-1"
        assert inside["operation"] == "adjust_stock"
        assert "correlation_id" not in outside

    def test_request_field_wins_over_extra(self, json_stream):
        with LogContext.bind(operation="delete_account"):
            get_logger("services.account").warning(
                "admin_required", extra={"operation": "something_else"}
            )

        (record,) = _parse_all_logs(json_stream)
        assert record["operation"] == "delete_account"

    @pytest.mark.parametrize("field", sorted(REDACTED_FIELDS))
    def test_secret_extras_redacted(self, json_stream, field):
        get_logger("services.account").info("careless", extra={field: "hunter2"})

        assert "hunter2" not in json_stream.getvalue()
        (record,) = _parse_all_logs(json_stream)
        assert record[field] == "[redacted]"

    def test_uuid_and_enum_extras_serialized(self, json_stream):
        from tea_kernel.models.ledger import StockReason

        uid = uuid4()
        get_logger("services.ledger").info(
            "stock_adjusted", extra={"entry_id": uid, "reason": StockReason.GIFT}
        )

        (record,) = _parse_all_logs(json_stream)
        assert record["entry_id"] == str(uid)
        assert record["reason"] == StockReason.GIFT.value

    def test_kernel_error_fields(self, json_stream):
        try:
            raise ItemNotFoundError("item-7")
        except ItemNotFoundError:
            get_logger("api").error("lookup_failed", exc_info=True)

        (record,) = _parse_all_logs(json_stream)
        assert record["exc_type"] == "ItemNotFoundError"
        assert record["exc_code"] == "ITEM_NOT_FOUND"
        assert record["exc_category"] == "NOT_FOUND"
        assert record["exc_item_id"] == "item-7"
        assert "traceback" in record

    def test_foreign_error_has_no_category(self, json_stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("api").error("failed", exc_info=True)

        (record,) = _parse_all_logs(json_stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_category" not in record


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_empty_by_default(self):
        assert LogContext.get_all() == {}

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(correlation_id="outer", operation="login"):
            with LogContext.bind(actor_id="acct-1"):
                assert LogContext.get_all() == {
                    "correlation_id": "outer",
                    "operation": "login",
                    "actor_id": "acct-1",
                }
            assert "actor_id" not in LogContext.get_all()
        assert LogContext.get_all() == {}

    def test_none_keeps_outer_value(self):
        with LogContext.bind(item_id="item-1"):
            with LogContext.bind(item_id=None, actor_id=None):
                assert LogContext.get_all() == {"item_id": "item-1"}

    def test_restored_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(operation="adjust_stock"):
                raise RuntimeError("x")
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="password"):
            with LogContext.bind(password="admin"):
                pass
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# CollectionApi envelope
# ---------------------------------------------------------------------------


class TestOperationEnvelope:

    def test_rejection_logged_with_code_and_category(self, api, admin_token, captured_logs):
        missing = uuid4()
        with pytest.raises(ItemNotFoundError):
            api.get_item(f"Bearer {admin_token}", missing)

        record = _only(captured_logs(), "operation_rejected")
        assert record["level"] == "INFO"
        assert record["error_code"] == "ITEM_NOT_FOUND"
        assert record["category"] == "NOT_FOUND"
        assert record["operation"] == "get_item"
        assert record["item_id"] == str(missing)
        assert record["correlation_id"]

    def test_missing_identity_rejected_without_actor(self, api, captured_logs):
        with pytest.raises(MissingIdentityError):
            api.list_items("Bearer not-a-token")

        record = _only(captured_logs(), "operation_rejected")
        assert record["error_code"] == "MISSING_IDENTITY"
        assert record["category"] == "UNAUTHENTICATED"
        assert "actor_id" not in record

    def test_each_call_gets_its_own_correlation_id(self, api, captured_logs):
        for _ in range(2):
            with pytest.raises(MissingIdentityError):
                api.list_items(None)

        ids = [r["correlation_id"] for r in captured_logs() if r["message"] == "operation_rejected"]
        assert len(ids) == 2
        assert ids[0] != ids[1]

    def test_fault_logged_as_failed_with_traceback(self, settings, clock, captured_logs):
        def unavailable():
            raise OperationalError("SELECT 1", {}, ConnectionError("connection refused"))

        api = CollectionApi(settings, session_factory=unavailable, clock=clock)
        with pytest.raises(InternalError) as exc_info:
            api.login("alice", "secret")

        assert "connection refused" not in str(exc_info.value)
        record = _only(captured_logs(), "operation_failed")
        assert record["level"] == "ERROR"
        assert record["operation"] == "login"
        assert record["error_type"] == "OperationalError"
        assert record["exc_type"] == "OperationalError"
        assert "exc_category" not in record
        assert "connection refused" in record["traceback"]

    def test_context_cleared_after_call(self, api):
        with pytest.raises(MissingIdentityError):
            api.list_items(None)
        assert LogContext.get_all() == {}


class TestSecretsNeverLogged:

    def test_tokens_hashes_and_passwords_absent(self, api, captured_logs):
        admin_token = api.login("admin", "admin").token
        auth = f"Bearer {admin_token}"
        api.change_password(auth, "rotated-admin-pass")
        api.create_account(auth, "alice", "alice-initial-pass")
        alice_token = api.login("alice", "alice-initial-pass").token
        with pytest.raises(InvalidCredentialsError):
            api.login("alice", "wrong-guess-pass")

        text = "\n".join(json.dumps(r) for r in captured_logs())
        assert "login_succeeded" in text
        for secret in (
            admin_token,
            alice_token,
            "rotated-admin-pass",
            "alice-initial-pass",
            "wrong-guess-pass",
            "$2b$",
        ):
            assert secret not in text


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_second_call_keeps_first_handler(self, json_stream):
        other, _ = _make_handler()
        installed = configure_logging(handler=other)

        assert installed is not other
        assert installed in logging.getLogger("tea_kernel").handlers
        assert other not in logging.getLogger("tea_kernel").handlers

    def test_reset_removes_only_installed_handler(self):
        root = logging.getLogger("tea_kernel")
        foreign, _ = _make_handler()
        root.addHandler(foreign)
        try:
            installed = configure_logging()
            reset_logging()
            assert installed not in root.handlers
            assert foreign in root.handlers
        finally:
            root.removeHandler(foreign)
            configure_logging(level=logging.DEBUG)

    def test_does_not_propagate_to_root_logger(self, json_stream):
        assert logging.getLogger("tea_kernel").propagate is False
