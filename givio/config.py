import os
import logging
from dataclasses import dataclass

# Logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("givio")


class ConfigurationError(RuntimeError):
    """Required server configuration is missing; admin routes must not be served."""


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    admin_password: str = ""
    admin_session_secret: str = ""
    # lets scripts hit /api/admin/* with an `xadmintoken` header instead of a cookie
    admin_sync_token: str = ""
    production: bool = False
    # flat shipping and handling; never part of the discount base
    shipping_cents: int = 0
    login_max_attempts: int = 10
    login_window_seconds: int = 15 * 60

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            admin_password=os.getenv("ADMIN_PASSWORD", ""),
            admin_session_secret=os.getenv("ADMIN_SESSION_SECRET", ""),
            admin_sync_token=os.getenv("ADMIN_SYNC_TOKEN", ""),
            production=os.getenv("GIVIO_ENV", "").lower() == "production",
            shipping_cents=max(0, _env_int("SHOP_SHIPPING_CENTS", 0)),
            login_max_attempts=max(1, _env_int("ADMIN_LOGIN_MAX_ATTEMPTS", 10)),
            login_window_seconds=max(
                1, _env_int("ADMIN_LOGIN_WINDOW_SECONDS", 15 * 60)
            ),
        )

    def require_session_secret(self) -> str:
        if not self.admin_session_secret:
            raise ConfigurationError("ADMIN_SESSION_SECRET is missing")
        return self.admin_session_secret

    def require_admin_password(self) -> str:
        if not self.admin_password:
            raise ConfigurationError("ADMIN_PASSWORD is missing")
        return self.admin_password
