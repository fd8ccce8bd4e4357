"""
AccountService -- login, administrator bootstrap, and account lifecycle.

Responsibility:
    Authenticates login attempts and issues identity assertions, provisions
    and repairs the reserved administrator account, rotates passwords, and
    gives administrators list/create/delete over accounts.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction; never commits.

Reserved administrator state machine (only for ``policy.admin_username``):

    Absent  --login-->  Provisioned
        Insert the account with a fresh hash of the default credential,
        role admin, is_initial = True.

    Provisioned with a damaged hash  --login-->  Provisioned
        The stored hash is not a well-formed bcrypt digest (historically,
        rows typed in by hand).  Overwrite it with a fresh hash of the
        default credential and set is_initial = True.  Runs before any
        credential comparison.

    Provisioned  --login-->  normal credential check.

    No other account name ever goes through this branch, and the name must
    match exactly.  CollectionApi runs these transitions in a transaction of
    their own that commits before the credential check, so a failed login
    still leaves the account Provisioned.

Invariants enforced:
    - New accounts created through ``create_account`` always get role user.
    - Credential hashes never leave this service (AccountSummary has none).
    - An administrator cannot delete their own account.

Failure modes:
    - InvalidCredentialsError: unknown name or wrong password.
    - PasswordTooShortError: new password below the minimum length.
    - AccountGoneError: password change for an account that was deleted
      after its token was issued.
    - AdminRequiredError: non-admin calling an admin operation.
    - MissingFieldError / InvalidFieldError: empty name or password,
      malformed target id.
    - AccountAlreadyExistsError: duplicate name.
    - SelfDeletionError: admin deleting themselves.
    - AccountNotFoundError: deleting an id that does not exist.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tea_kernel.domain.clock import Clock
from tea_kernel.domain.dtos import AccountSummary, Identity, LoginResult, parse_uuid
from tea_kernel.exceptions import (
    AccountAlreadyExistsError,
    AccountGoneError,
    AccountNotFoundError,
    AdminRequiredError,
    InvalidCredentialsError,
    InvalidFieldError,
    MissingFieldError,
    PasswordTooShortError,
    SelfDeletionError,
)
from tea_kernel.logging_config import get_logger
from tea_kernel.models.account import Account, AccountRole
from tea_kernel.services.base import BaseService
from tea_kernel.services.token_service import TokenService
from tea_kernel.utils.hashing import hash_secret, is_well_formed_hash, verify_secret

logger = get_logger("services.account")


@dataclass(frozen=True)
class AccountPolicy:
    """Tunables for account handling, built from Settings."""

    admin_username: str = "admin"
    admin_default_password: str = "admin"
    min_password_length: int = 4
    bcrypt_rounds: int = 10


class AccountService(BaseService[Account]):
    """
    Service for authentication and account administration.

    Contract:
        ``login()`` needs no prior identity.  Every other method takes the
        caller's resolved Identity and checks it before touching any row.
    """

    def __init__(
        self,
        session: Session,
        tokens: TokenService,
        policy: AccountPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._tokens = tokens
        self._policy = policy or AccountPolicy()

    def _hash(self, secret: str) -> str:
        return hash_secret(secret, rounds=self._policy.bcrypt_rounds)

    def _find_by_name(self, name: str, lock: bool = False) -> Account | None:
        stmt = select(Account).where(Account.name == name)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def _require_admin(self, identity: Identity, operation: str) -> None:
        if not identity.is_admin:
            logger.warning(
                "admin_required",
                extra={"operation": operation, "account_id": str(identity.account_id)},
            )
            raise AdminRequiredError(operation)

    # ------------------------------------------------------------------
    # Login and administrator bootstrap
    # ------------------------------------------------------------------

    def is_reserved_name(self, name: str | None) -> bool:
        """True only for the exact configured administrator name."""
        return bool(name) and name == self._policy.admin_username

    def ensure_admin_account(self) -> None:
        """
        Provision or repair the reserved administrator account.

        Runs ahead of the credential check of a login for the reserved
        name.  CollectionApi commits it in its own transaction, so the
        account exists (or is repaired) even when that login fails.
        """
        name = self._policy.admin_username
        account = self._find_by_name(name, lock=True)

        if account is None:
            try:
                with self.session.begin_nested():
                    self.session.add(
                        Account(
                            name=name,
                            password_hash=self._hash(self._policy.admin_default_password),
                            role=AccountRole.ADMIN,
                            is_initial=True,
                            created_at=self._clock.now(),
                        )
                    )
            except IntegrityError:
                # Another request provisioned it between our SELECT and INSERT
                logger.info("admin_account_already_provisioned", extra={"account_name": name})
                return
            logger.info("admin_account_provisioned", extra={"account_name": name})
            return

        if not is_well_formed_hash(account.password_hash):
            account.password_hash = self._hash(self._policy.admin_default_password)
            account.is_initial = True
            self.session.flush()
            logger.warning(
                "admin_hash_repaired",
                extra={"account_name": name, "account_id": str(account.id)},
            )

    def login(self, name: str, credential: str, bootstrap: bool = True) -> LoginResult:
        """
        Authenticate and issue an identity assertion.

        The name is matched exactly as given; no whitespace is trimmed.

        Args:
            name: Account name.
            credential: Plain-text password.
            bootstrap: Run ensure_admin_account() first when the name is
                the reserved one.  False when the caller already did.

        Returns:
            LoginResult with the token and the account summary.

        Raises:
            InvalidCredentialsError: Unknown name or wrong password.
        """
        name = name or ""
        if bootstrap and self.is_reserved_name(name):
            self.ensure_admin_account()

        account = self._find_by_name(name) if name else None
        if account is None or not verify_secret(credential or "", account.password_hash):
            logger.info("login_failed", extra={"account_name": name})
            raise InvalidCredentialsError()

        token = self._tokens.issue(account.id, account.name, account.role)
        logger.info(
            "login_succeeded",
            extra={"account_id": str(account.id), "role": AccountRole(account.role).value},
        )
        return LoginResult(token=token, account=AccountSummary.from_model(account))

    # ------------------------------------------------------------------
    # Password rotation
    # ------------------------------------------------------------------

    def change_password(self, identity: Identity, new_credential: str) -> None:
        """
        Replace the caller's password and clear ``is_initial``.

        Raises:
            PasswordTooShortError: Shorter than the policy minimum.
            AccountGoneError: The caller's account no longer exists.
        """
        minimum = self._policy.min_password_length
        if not isinstance(new_credential, str) or len(new_credential) < minimum:
            raise PasswordTooShortError(minimum)

        account = self.session.get(Account, identity.account_id, with_for_update=True)
        if account is None:
            raise AccountGoneError(str(identity.account_id))

        account.password_hash = self._hash(new_credential)
        account.is_initial = False
        self.session.flush()
        logger.info("password_changed", extra={"account_id": str(account.id)})

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def list_accounts(self, identity: Identity) -> list[AccountSummary]:
        """All accounts, oldest first. Admin only."""
        self._require_admin(identity, "list_accounts")
        accounts = self.session.execute(
            select(Account).order_by(Account.created_at.asc(), Account.name.asc())
        ).scalars().all()
        return [AccountSummary.from_model(a) for a in accounts]

    def create_account(
        self,
        identity: Identity,
        name: str,
        credential: str,
    ) -> AccountSummary:
        """
        Create a regular (role user) account. Admin only.

        Raises:
            MissingFieldError: Empty name or password.
            AccountAlreadyExistsError: Name is taken.
        """
        self._require_admin(identity, "create_account")

        name = (name or "").strip()
        if not name:
            raise MissingFieldError("name")
        if not credential:
            raise MissingFieldError("password")

        if self._find_by_name(name) is not None:
            raise AccountAlreadyExistsError(name)

        account = Account(
            name=name,
            password_hash=self._hash(credential),
            role=AccountRole.USER,
            is_initial=False,
            created_at=self._clock.now(),
        )
        try:
            with self.session.begin_nested():
                self.session.add(account)
        except IntegrityError:
            raise AccountAlreadyExistsError(name) from None

        logger.info(
            "account_created",
            extra={"account_id": str(account.id), "created_by": str(identity.account_id)},
        )
        return AccountSummary.from_model(account)

    def delete_account(self, identity: Identity, target_id: UUID | str) -> None:
        """
        Delete an account, its items and their ledgers. Admin only.

        Raises:
            InvalidFieldError: target_id is not a UUID.
            SelfDeletionError: target is the caller.
            AccountNotFoundError: No such account.
        """
        self._require_admin(identity, "delete_account")

        target = parse_uuid(target_id)
        if target is None:
            raise InvalidFieldError("id", "not a valid account id")

        if target == identity.account_id:
            raise SelfDeletionError(str(target))

        # Bulk DELETE so the database cascade removes items and ledger
        # entries without loading them into the unit of work.
        result = self.session.execute(delete(Account).where(Account.id == target))
        if result.rowcount == 0:
            raise AccountNotFoundError(str(target))

        logger.info(
            "account_deleted",
            extra={"account_id": str(target), "deleted_by": str(identity.account_id)},
        )
