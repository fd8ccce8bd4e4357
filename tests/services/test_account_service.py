"""Tests for AccountService: login, admin bootstrap/repair, account lifecycle."""

from uuid import uuid4

import pytest
from sqlalchemy import delete, func, select

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
from tea_kernel.models.account import Account, AccountRole
from tea_kernel.models.item import Item
from tea_kernel.models.ledger import LedgerEntry
from tea_kernel.services.account_service import AccountService
from tea_kernel.services.item_service import ItemService
from tea_kernel.domain.dtos import ItemFields
from tea_kernel.utils.hashing import is_well_formed_hash


@pytest.fixture
def accounts(session, tokens, account_policy, clock):
    return AccountService(session, tokens, account_policy, clock)


def _admin_rows(session, name="admin"):
    return session.execute(
        select(func.count()).select_from(Account).where(Account.name == name)
    ).scalar_one()


class TestAdminBootstrap:
    def test_first_login_provisions_admin(self, accounts, session, tokens):
        result = accounts.login("admin", "admin")

        assert result.account.name == "admin"
        assert result.account.role is AccountRole.ADMIN
        assert result.account.is_initial is True
        assert tokens.verify(result.token).is_admin
        assert _admin_rows(session) == 1

    def test_second_login_does_not_duplicate(self, accounts, session):
        first = accounts.login("admin", "admin")
        second = accounts.login("admin", "admin")

        assert first.account.id == second.account.id
        assert _admin_rows(session) == 1

    def test_first_login_with_wrong_password_still_provisions(self, accounts, session):
        with pytest.raises(InvalidCredentialsError):
            accounts.login("admin", "wrong")
        assert _admin_rows(session) == 1

    def test_corrupt_hash_repaired_before_comparison(self, accounts, session, captured_logs):
        accounts.login("admin", "admin")
        admin = session.execute(select(Account).where(Account.name == "admin")).scalar_one()
        admin.password_hash = "admin"  # typed in by hand
        admin.is_initial = False
        session.flush()

        result = accounts.login("admin", "admin")

        assert is_well_formed_hash(admin.password_hash)
        assert result.account.is_initial is True
        assert any(r["message"] == "admin_hash_repaired" for r in captured_logs())

    def test_bootstrap_only_for_reserved_name(self, accounts, session):
        with pytest.raises(InvalidCredentialsError):
            accounts.login("administrator", "admin")
        assert _admin_rows(session, "administrator") == 0

    @pytest.mark.parametrize("name", [" admin", "admin ", " admin ", "Admin"])
    def test_reserved_name_matched_exactly(self, accounts, session, name):
        with pytest.raises(InvalidCredentialsError):
            accounts.login(name, "admin")
        assert _admin_rows(session) == 0

    def test_padded_name_does_not_reach_existing_admin(self, accounts, session):
        accounts.login("admin", "admin")
        with pytest.raises(InvalidCredentialsError):
            accounts.login(" admin ", "admin")

    def test_login_without_bootstrap(self, accounts, session):
        with pytest.raises(InvalidCredentialsError):
            accounts.login("admin", "admin", bootstrap=False)
        assert _admin_rows(session) == 0

    def test_corrupt_hash_on_regular_account_not_repaired(self, accounts, session, make_account):
        make_account("carol")
        carol = session.execute(select(Account).where(Account.name == "carol")).scalar_one()
        carol.password_hash = "secret"
        session.flush()

        with pytest.raises(InvalidCredentialsError):
            accounts.login("carol", "secret")
        assert carol.password_hash == "secret"


class TestLogin:
    def test_regular_account(self, accounts, make_account, tokens):
        identity = make_account("dave", password="pu-erh")
        result = accounts.login("dave", "pu-erh")
        assert result.account.id == identity.account_id
        assert tokens.verify(result.token).account_id == identity.account_id

    def test_unknown_name(self, accounts):
        with pytest.raises(InvalidCredentialsError):
            accounts.login("nobody", "whatever")

    def test_wrong_password(self, accounts, make_account):
        make_account("erin", password="right")
        with pytest.raises(InvalidCredentialsError):
            accounts.login("erin", "wrong")

    def test_unknown_and_wrong_are_same_error(self, accounts, make_account):
        make_account("frank", password="right")
        with pytest.raises(InvalidCredentialsError) as unknown:
            accounts.login("nobody", "right")
        with pytest.raises(InvalidCredentialsError) as wrong:
            accounts.login("frank", "wrong")
        assert str(unknown.value) == str(wrong.value)

    def test_summary_has_no_hash(self, accounts, make_account):
        make_account("gina", password="right")
        summary = accounts.login("gina", "right").account.to_dict()
        assert "password_hash" not in summary


class TestChangePassword:
    def test_three_characters_rejected(self, accounts, make_account):
        identity = make_account("hank", password="old-password")
        with pytest.raises(PasswordTooShortError) as exc_info:
            accounts.change_password(identity, "abc")
        assert exc_info.value.category == "INVALID_INPUT"
        assert exc_info.value.minimum == 4

    def test_four_characters_accepted_and_old_rejected(self, accounts, make_account):
        identity = make_account("ivy", password="old-password")

        accounts.change_password(identity, "abcd")

        assert accounts.login("ivy", "abcd").account.id == identity.account_id
        with pytest.raises(InvalidCredentialsError):
            accounts.login("ivy", "old-password")

    def test_clears_initial_flag(self, accounts, tokens):
        result = accounts.login("admin", "admin")
        identity = tokens.verify(result.token)

        accounts.change_password(identity, "new-admin-pw")

        assert accounts.login("admin", "new-admin-pw").account.is_initial is False

    def test_deleted_account(self, accounts, make_account, session):
        identity = make_account("jack")
        session.execute(delete(Account).where(Account.id == identity.account_id))
        with pytest.raises(AccountGoneError):
            accounts.change_password(identity, "long-enough")


class TestAdministration:
    def test_list_requires_admin(self, accounts, owner):
        with pytest.raises(AdminRequiredError) as exc_info:
            accounts.list_accounts(owner)
        assert exc_info.value.category == "FORBIDDEN"

    def test_list_ordered_by_creation(self, accounts, admin, owner, other_owner):
        names = [a.name for a in accounts.list_accounts(admin)]
        assert names == ["root-admin", "alice", "bob"]

    def test_create_always_user_role(self, accounts, admin):
        summary = accounts.create_account(admin, "kate", "tieguanyin")
        assert summary.role is AccountRole.USER
        assert summary.is_initial is False
        assert accounts.login("kate", "tieguanyin").account.id == summary.id

    def test_create_requires_admin(self, accounts, owner):
        with pytest.raises(AdminRequiredError):
            accounts.create_account(owner, "leo", "password")

    def test_create_duplicate_name(self, accounts, admin, owner):
        with pytest.raises(AccountAlreadyExistsError) as exc_info:
            accounts.create_account(admin, "alice", "password")
        assert exc_info.value.category == "CONFLICT"

    @pytest.mark.parametrize("name,password,field", [("", "pw12", "name"), ("mia", "", "password")])
    def test_create_empty_fields(self, accounts, admin, name, password, field):
        with pytest.raises(MissingFieldError) as exc_info:
            accounts.create_account(admin, name, password)
        assert exc_info.value.field == field

    def test_self_deletion_forbidden(self, accounts, admin, make_account):
        make_account("second-admin", role=AccountRole.ADMIN)
        with pytest.raises(SelfDeletionError) as exc_info:
            accounts.delete_account(admin, admin.account_id)
        assert exc_info.value.category == "INVALID_INPUT"

    def test_delete_requires_admin(self, accounts, owner, other_owner):
        with pytest.raises(AdminRequiredError):
            accounts.delete_account(owner, other_owner.account_id)

    def test_delete_unknown(self, accounts, admin):
        with pytest.raises(AccountNotFoundError):
            accounts.delete_account(admin, uuid4())

    def test_delete_malformed_id(self, accounts, admin):
        with pytest.raises(InvalidFieldError):
            accounts.delete_account(admin, "not-an-id")

    def test_delete_cascades_items_and_ledger(self, accounts, admin, owner, session, clock):
        item = ItemService(session, clock).create(
            owner, ItemFields(name="Longjing", kind="TEA", quantity=3, price=30)
        )

        accounts.delete_account(admin, str(owner.account_id))

        session.expire_all()
        assert session.get(Item, item.id) is None
        remaining = session.execute(
            select(func.count()).select_from(LedgerEntry).where(LedgerEntry.item_id == item.id)
        ).scalar_one()
        assert remaining == 0
