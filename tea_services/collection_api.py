"""
tea_services.collection_api -- the facade the transport layer calls.

Responsibility:
    Wires kernel services and selectors to a session factory and exposes
    one method per collaborator-facing operation.  Each call:

        1. binds a correlation id and the operation name to LogContext,
        2. resolves the caller's Identity from the raw Authorization value
           (MissingIdentityError if it does not verify),
        3. runs inside exactly one ``session_scope``: commit on success,
           rollback on any exception, connection back to the pool,
        4. lets TeaKernelError through unchanged and wraps anything else in
           InternalError after the rollback.

    The one exception to step 3 is ``login`` for the reserved administrator
    name: provisioning commits in a first scope, the credential check runs
    in a second.

Architecture position:
    Services -- sits above ``tea_kernel`` and ``tea_config``.  The kernel
    never imports from here.

Invariants enforced:
    - No operation other than ``login`` and ``status`` runs without a
      verified Identity.
    - A failed call never commits partial writes.
    - Unexpected faults surface as category INTERNAL with no driver detail
      in the message; the cause is logged.

Usage:
    api = CollectionApi(get_active_settings())
    result = api.login("admin", "admin")
    api.create_item(f"Bearer {result.token}", {"name": "Longjing", "kind": "TEA"})
"""

from __future__ import annotations

from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from tea_config import Settings, get_active_settings
from tea_config.bridges import build_account_policy, build_token_service
from tea_kernel.db.engine import get_or_init_engine, get_session_factory, session_scope
from tea_kernel.db.immutability import register_immutability_listeners
from tea_kernel.domain.clock import Clock, SystemClock
from tea_kernel.domain.dtos import (
    AccountSummary,
    Identity,
    ItemFields,
    ItemInfo,
    LedgerEntryInfo,
    LedgerReconciliation,
    LoginResult,
)
from tea_kernel.exceptions import InternalError, MissingIdentityError, TeaKernelError
from tea_kernel.logging_config import LogContext, get_logger
from tea_kernel.models.ledger import StockReason
from tea_kernel.selectors.item_selector import ItemSelector
from tea_kernel.selectors.ledger_selector import LedgerSelector
from tea_kernel.services.account_service import AccountService
from tea_kernel.services.item_service import ItemService
from tea_kernel.services.ledger_service import InventoryLedgerService

logger = get_logger("api")


def error_payload(exc: BaseException) -> dict[str, str]:
    """Render an exception for the transport layer."""
    if isinstance(exc, TeaKernelError):
        return {"error": exc.code, "category": exc.category, "message": str(exc)}
    return {
        "error": InternalError.code,
        "category": InternalError.category,
        "message": str(InternalError()),
    }


class CollectionApi:
    """
    Operation facade over the kernel.

    Args:
        settings: Loaded settings; defaults to ``get_active_settings()``.
        session_factory: Session factory to draw transactions from.  When
            omitted, the process engine is built (once) from
            ``settings.database_url``.
        clock: Time source shared by every service.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings or get_active_settings()
        self._clock = clock or SystemClock()

        if session_factory is None:
            get_or_init_engine(
                self._settings.database_url, pool_size=self._settings.pool_size
            )
            session_factory = get_session_factory()
        self._session_factory = session_factory

        self._tokens = build_token_service(self._settings, self._clock)
        self._policy = build_account_policy(self._settings)

        register_immutability_listeners()

        if self._settings.uses_default_secret:
            logger.warning("default_token_secret_in_use")

    @property
    def settings(self) -> Settings:
        return self._settings

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _resolve(self, authorization: str | None) -> Identity:
        identity = self._tokens.verify(authorization)
        if identity is None:
            raise MissingIdentityError()
        return identity

    @contextmanager
    def _call(
        self,
        operation: str,
        authorization: str | None = None,
        authenticated: bool = True,
        item_id: UUID | str | None = None,
    ) -> Generator[tuple[Session, Identity | None], None, None]:
        """Scoped transaction for one operation; see module docstring."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            item_id=str(item_id) if item_id is not None else None,
        ):
            try:
                identity = self._resolve(authorization) if authenticated else None
                with LogContext.bind(
                    actor_id=str(identity.account_id) if identity else None
                ):
                    with session_scope(self._session_factory) as session:
                        yield session, identity
            except TeaKernelError as exc:
                logger.info(
                    "operation_rejected",
                    extra={"error_code": exc.code, "category": exc.category},
                )
                raise
            except Exception as exc:
                logger.error(
                    "operation_failed",
                    extra={"error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise InternalError() from exc

    def _accounts(self, session: Session) -> AccountService:
        return AccountService(session, self._tokens, self._policy, self._clock)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def login(self, name: str, password: str) -> LoginResult:
        """
        Authenticate by name and password.

        For the reserved administrator name, provisioning or hash repair
        commits in its own transaction before the password is checked, so
        it survives a failed attempt.
        """
        with self._call("login", authenticated=False) as (session, _):
            accounts = self._accounts(session)
            if not accounts.is_reserved_name(name):
                return accounts.login(name, password)
            accounts.ensure_admin_account()

        with self._call("login", authenticated=False) as (session, _):
            return self._accounts(session).login(name, password, bootstrap=False)

    def change_password(self, authorization: str | None, new_password: str) -> None:
        with self._call("change_password", authorization) as (session, identity):
            self._accounts(session).change_password(identity, new_password)

    def list_accounts(self, authorization: str | None) -> list[AccountSummary]:
        with self._call("list_accounts", authorization) as (session, identity):
            return self._accounts(session).list_accounts(identity)

    def create_account(
        self, authorization: str | None, name: str, password: str
    ) -> AccountSummary:
        with self._call("create_account", authorization) as (session, identity):
            return self._accounts(session).create_account(identity, name, password)

    def delete_account(self, authorization: str | None, account_id: UUID | str) -> None:
        with self._call("delete_account", authorization) as (session, identity):
            self._accounts(session).delete_account(identity, account_id)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @staticmethod
    def _fields(fields: ItemFields | Mapping[str, Any]) -> ItemFields:
        if isinstance(fields, ItemFields):
            return fields
        return ItemFields.from_mapping(dict(fields))

    def list_items(
        self,
        authorization: str | None,
        kind: str | None = None,
        query: str | None = None,
    ) -> list[ItemInfo]:
        with self._call("list_items", authorization) as (session, identity):
            return ItemSelector(session).list(identity, kind=kind, query=query)

    def get_item(self, authorization: str | None, item_id: UUID | str) -> ItemInfo:
        with self._call("get_item", authorization, item_id=item_id) as (session, identity):
            return ItemSelector(session).get(identity, item_id)

    def create_item(
        self,
        authorization: str | None,
        fields: ItemFields | Mapping[str, Any],
    ) -> ItemInfo:
        with self._call("create_item", authorization) as (session, identity):
            return ItemService(session, self._clock).create(identity, self._fields(fields))

    def update_item(
        self,
        authorization: str | None,
        item_id: UUID | str,
        fields: ItemFields | Mapping[str, Any],
    ) -> ItemInfo:
        with self._call("update_item", authorization, item_id=item_id) as (session, identity):
            return ItemService(session, self._clock).update(
                identity, item_id, self._fields(fields)
            )

    def delete_item(self, authorization: str | None, item_id: UUID | str) -> None:
        with self._call("delete_item", authorization, item_id=item_id) as (session, identity):
            ItemService(session, self._clock).delete(identity, item_id)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def adjust_stock(
        self,
        authorization: str | None,
        item_id: UUID | str,
        delta: int,
        reason: StockReason | str,
        note: str | None = None,
    ) -> ItemInfo:
        with self._call("adjust_stock", authorization, item_id=item_id) as (session, identity):
            return InventoryLedgerService(session, self._clock).adjust_stock(
                identity, item_id, delta, reason, note
            )

    def list_logs(
        self, authorization: str | None, item_id: UUID | str
    ) -> list[LedgerEntryInfo]:
        with self._call("list_logs", authorization, item_id=item_id) as (session, identity):
            return LedgerSelector(session).list_logs(identity, item_id)

    def verify_item_ledger(
        self, authorization: str | None, item_id: UUID | str
    ) -> LedgerReconciliation:
        with self._call("verify_item_ledger", authorization, item_id=item_id) as (
            session,
            identity,
        ):
            return LedgerSelector(session).reconcile(identity, item_id)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Non-secret runtime status; no identity required."""
        return self._settings.public_status()
