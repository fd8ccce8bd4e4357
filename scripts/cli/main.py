"""CLI main: argument parsing and command dispatch for tea-ledger."""

from __future__ import annotations

import argparse
import getpass
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from scripts.cli import config as cli_config
from scripts.cli.util import (
    enable_quiet_logging,
    fmt_amount,
    load_token,
    print_json,
    print_table,
    restore_logging,
    save_token,
)
from tea_kernel.exceptions import TeaKernelError
from tea_kernel.models.item import ItemKind
from tea_kernel.models.ledger import StockReason

# Item attributes settable from the command line, as (flag, key)
_ITEM_OPTIONS = (
    ("--name", "name"),
    ("--kind", "kind"),
    ("--category", "category"),
    ("--year", "year"),
    ("--origin", "origin"),
    ("--description", "description"),
    ("--image-url", "image_url"),
    ("--unit", "unit"),
)

# Reasons a user may record; INITIAL is written by the system only
_MOVEMENT_REASONS = [r.value for r in StockReason if r is not StockReason.INITIAL]


@dataclass
class _Context:
    api: object
    token_path: Path
    token_override: str | None
    out: TextIO
    as_json: bool

    def token(self) -> str | None:
        return self.token_override or load_token(self.token_path)


def _add_item_options(parser: argparse.ArgumentParser, required: bool) -> None:
    for flag, key in _ITEM_OPTIONS:
        parser.add_argument(
            flag,
            dest=key,
            required=required and key in ("name", "kind"),
            choices=[k.value for k in ItemKind] if key == "kind" else None,
            type=(lambda s: s.upper()) if key == "kind" else str,
        )
    parser.add_argument("--quantity", type=int, default=None)
    parser.add_argument("--price", default=None, help="Total value of the holding.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tea-ledger",
        description="Track a tea and teaware collection with a stock ledger.",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file.")
    parser.add_argument("--token-file", type=Path, default=None)
    parser.add_argument("--token", default=None, help="Use this token instead of the saved one.")
    parser.add_argument("--json", action="store_true", dest="as_json", help="Print JSON.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show structured logs.")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables.")
    sub.add_parser("status", help="Show non-secret runtime status.")

    p = sub.add_parser("login", help="Log in and save the session token.")
    p.add_argument("name")
    p.add_argument("--password", default=None)

    p = sub.add_parser("passwd", help="Change your password.")
    p.add_argument("--password", default=None)

    accounts = sub.add_parser("accounts", help="Manage accounts (admin).")
    acc_sub = accounts.add_subparsers(dest="action", required=True)
    acc_sub.add_parser("list")
    p = acc_sub.add_parser("create")
    p.add_argument("name")
    p.add_argument("--password", default=None)
    p = acc_sub.add_parser("delete")
    p.add_argument("account_id")

    items = sub.add_parser("items", help="Manage your items.")
    item_sub = items.add_subparsers(dest="action", required=True)
    p = item_sub.add_parser("list")
    p.add_argument("--kind", type=lambda s: s.upper(), choices=[k.value for k in ItemKind])
    p.add_argument("--query", "-q", default=None)
    p = item_sub.add_parser("show")
    p.add_argument("item_id")
    p = item_sub.add_parser("add")
    _add_item_options(p, required=True)
    p = item_sub.add_parser("edit")
    p.add_argument("item_id")
    _add_item_options(p, required=False)
    p = item_sub.add_parser("rm")
    p.add_argument("item_id")

    p = sub.add_parser("stock", help="Record a stock movement.")
    p.add_argument("item_id")
    p.add_argument("delta", type=int)
    p.add_argument(
        "--reason",
        required=True,
        type=lambda s: s.upper(),
        choices=_MOVEMENT_REASONS,
    )
    p.add_argument("--note", default=None)

    p = sub.add_parser("logs", help="Show an item's ledger, newest first.")
    p.add_argument("item_id")

    p = sub.add_parser("verify", help="Replay an item's ledger against its quantity.")
    p.add_argument("item_id")

    return parser


def _password(value: str | None, prompt: str) -> str:
    return value if value is not None else getpass.getpass(prompt)


def _show_items(ctx: _Context, items) -> None:
    if ctx.as_json:
        print_json([i.to_dict() for i in items], ctx.out)
        return
    rows = [
        [
            str(i.id),
            i.kind.value,
            i.name,
            f"{i.quantity} {i.unit}",
            fmt_amount(i.price),
            fmt_amount(i.unit_price),
        ]
        for i in items
    ]
    print_table(rows, ["ID", "KIND", "NAME", "QTY", "VALUE", "UNIT PRICE"], ctx.out)


def _show_item(ctx: _Context, item) -> None:
    if ctx.as_json:
        print_json(item.to_dict(), ctx.out)
        return
    for key, value in item.to_dict().items():
        ctx.out.write(f"{key:>12}: {'' if value is None else value}\n")


def _item_payload(args: argparse.Namespace, base: dict | None = None) -> dict:
    payload = dict(base or {})
    for _, key in _ITEM_OPTIONS:
        value = getattr(args, key)
        if value is not None:
            payload[key] = value
    if args.quantity is not None:
        payload["quantity"] = args.quantity
    if args.price is not None:
        payload["price"] = args.price
    return payload


def _run(ctx: _Context, args: argparse.Namespace) -> int:
    api = ctx.api
    cmd = args.command

    if cmd == "status":
        print_json(api.status(), ctx.out)
        return 0

    if cmd == "login":
        result = api.login(args.name, _password(args.password, "Password: "))
        save_token(ctx.token_path, result.token)
        if ctx.as_json:
            print_json(result.account.to_dict(), ctx.out)
        else:
            ctx.out.write(f"Logged in as {result.account.name} ({result.account.role.value})\n")
            if result.account.is_initial:
                ctx.out.write("You are using the default password; change it with 'tea-ledger passwd'.\n")
        return 0

    if cmd == "passwd":
        api.change_password(ctx.token(), _password(args.password, "New password: "))
        ctx.out.write("Password changed\n")
        return 0

    if cmd == "accounts":
        if args.action == "list":
            accounts = api.list_accounts(ctx.token())
            if ctx.as_json:
                print_json([a.to_dict() for a in accounts], ctx.out)
            else:
                rows = [
                    [str(a.id), a.name, a.role.value, "yes" if a.is_initial else "", a.created_at.isoformat()]
                    for a in accounts
                ]
                print_table(rows, ["ID", "NAME", "ROLE", "INITIAL", "CREATED"], ctx.out)
        elif args.action == "create":
            account = api.create_account(
                ctx.token(), args.name, _password(args.password, "Password for new account: ")
            )
            if ctx.as_json:
                print_json(account.to_dict(), ctx.out)
            else:
                ctx.out.write(f"Created account {account.name} ({account.id})\n")
        else:
            api.delete_account(ctx.token(), args.account_id)
            ctx.out.write(f"Deleted account {args.account_id}\n")
        return 0

    if cmd == "items":
        if args.action == "list":
            _show_items(ctx, api.list_items(ctx.token(), kind=args.kind, query=args.query))
        elif args.action == "show":
            _show_item(ctx, api.get_item(ctx.token(), args.item_id))
        elif args.action == "add":
            _show_item(ctx, api.create_item(ctx.token(), _item_payload(args)))
        elif args.action == "edit":
            current = api.get_item(ctx.token(), args.item_id).to_dict()
            _show_item(ctx, api.update_item(ctx.token(), args.item_id, _item_payload(args, current)))
        else:
            api.delete_item(ctx.token(), args.item_id)
            ctx.out.write(f"Deleted item {args.item_id}\n")
        return 0

    if cmd == "stock":
        item = api.adjust_stock(ctx.token(), args.item_id, args.delta, args.reason, args.note)
        _show_item(ctx, item)
        return 0

    if cmd == "logs":
        entries = api.list_logs(ctx.token(), args.item_id)
        if ctx.as_json:
            print_json([e.to_dict() for e in entries], ctx.out)
        else:
            rows = [
                [
                    str(e.sequence),
                    e.created_at.isoformat(),
                    f"{e.change_amount:+d}",
                    str(e.current_balance),
                    e.reason.value,
                    e.note or "",
                ]
                for e in entries
            ]
            print_table(rows, ["SEQ", "AT", "CHANGE", "BALANCE", "REASON", "NOTE"], ctx.out)
        return 0

    if cmd == "verify":
        result = api.verify_item_ledger(ctx.token(), args.item_id)
        print_json(result.to_dict(), ctx.out)
        return 0 if result.is_consistent else 3

    raise ValueError(f"Unhandled command: {cmd}")


def _init_db(settings, out: TextIO) -> int:
    from tea_kernel.db.engine import create_tables, get_or_init_engine

    get_or_init_engine(settings.database_url, pool_size=settings.pool_size)
    create_tables()
    out.write(f"Tables created ({settings.backend})\n")
    return 0


def main(argv: list[str] | None = None, api=None, out: TextIO | None = None) -> int:
    """
    Run one tea-ledger command.

    Args:
        argv: Arguments (defaults to sys.argv[1:]).
        api: A ready CollectionApi; built from settings when omitted.
        out: Output stream (defaults to stdout).

    Returns:
        Process exit code: 0 ok, 1 rejected by the ledger, 3 ledger
        verification found inconsistencies.
    """
    from tea_config import get_active_settings
    from tea_kernel.logging_config import configure_logging
    from tea_services.collection_api import CollectionApi, error_payload

    args = build_parser().parse_args(argv)
    out = out or sys.stdout

    settings = api.settings if api is not None else get_active_settings(args.config)
    configure_logging(level=settings.log_level, stream=sys.stderr)
    muted = [] if args.verbose else enable_quiet_logging()

    try:
        if args.command == "init-db":
            return _init_db(settings, out)

        ctx = _Context(
            api=api if api is not None else CollectionApi(settings),
            token_path=cli_config.token_file_path(args.token_file),
            token_override=args.token or os.environ.get(cli_config.TOKEN_ENV) or None,
            out=out,
            as_json=args.as_json,
        )
        return _run(ctx, args)
    except TeaKernelError as exc:
        payload = error_payload(exc)
        sys.stderr.write(f"error: {payload['error']}: {payload['message']}\n")
        return 1
    finally:
        restore_logging(muted)


if __name__ == "__main__":
    sys.exit(main())
