"""
Bridges from ``Settings`` to kernel inputs.

The kernel never imports ``tea_config``; these helpers translate loaded
settings into the plain objects kernel services take.
"""

from datetime import timedelta

from tea_config.schema import Settings
from tea_kernel.domain.clock import Clock
from tea_kernel.services.account_service import AccountPolicy
from tea_kernel.services.token_service import TokenService


def build_account_policy(settings: Settings) -> AccountPolicy:
    return AccountPolicy(
        admin_username=settings.admin_username,
        admin_default_password=settings.admin_default_password,
        min_password_length=settings.min_password_length,
        bcrypt_rounds=settings.bcrypt_rounds,
    )


def build_token_service(settings: Settings, clock: Clock | None = None) -> TokenService:
    return TokenService(
        settings.jwt_secret,
        ttl=timedelta(days=settings.token_ttl_days),
        clock=clock,
    )
