"""CLI utilities: formatting, token storage, logging mute/restore."""

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, TextIO


def fmt_amount(v) -> str:
    """Format a monetary amount for display (e.g. 1,234.50)."""
    d = Decimal(str(v))
    return f"{d:,.2f}"


def print_json(payload: Any, out: TextIO) -> None:
    out.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def print_table(rows: list[list[str]], headers: list[str], out: TextIO) -> None:
    """Left-aligned fixed-width table."""
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    out.write(line.rstrip() + "\n")
    out.write("  ".join("-" * w for w in widths) + "\n")
    for row in rows:
        out.write("  ".join(c.ljust(w) for c, w in zip(row, widths)).rstrip() + "\n")


def save_token(path: Path, token: str) -> None:
    """Write the token readable by the current user only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(token)


def load_token(path: Path) -> str | None:
    if not path.exists():
        return None
    return path.read_text().strip() or None


def enable_quiet_logging():
    """Mute console handlers so CLI output stays clean. Returns list to pass to restore_logging."""
    tk_logger = logging.getLogger("tea_kernel")
    muted = []
    for h in tk_logger.handlers:
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            muted.append((h, h.level))
            h.setLevel(logging.CRITICAL + 1)
    return muted


def restore_logging(muted):
    """Restore muted handlers after a quiet-logging section."""
    for h, orig_level in muted:
        h.setLevel(orig_level)
