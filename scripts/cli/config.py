"""CLI configuration: where the session token is kept between commands."""

import os
from pathlib import Path

TOKEN_FILE_ENV = "TEA_TOKEN_FILE"
TOKEN_ENV = "TEA_TOKEN"

DEFAULT_TOKEN_FILE = Path.home() / ".tea_ledger_token"


def token_file_path(override: str | Path | None = None) -> Path:
    if override:
        return Path(override)
    return Path(os.environ.get(TOKEN_FILE_ENV) or DEFAULT_TOKEN_FILE)
