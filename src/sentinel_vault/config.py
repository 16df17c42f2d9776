# Sentinel Vault - Runtime Configuration
#
# All tunables are read from SENTINEL_* environment variables.
# A .env file in the working directory is loaded first (python-dotenv),
# real environment variables always win.

import os
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import FrozenSet, Optional

from dotenv import load_dotenv

ENV_PREFIX = "SENTINEL_"


def _env(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name, "true" if default else "false").strip().lower()
    return raw in ("1", "true", "yes", "on")


def _env_set(name: str) -> FrozenSet[str]:
    raw = _env(name, "")
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings snapshot.

    Security-relevant defaults:
    - kdf_iterations: OWASP 2023 recommendation for PBKDF2-SHA256
    - min_password_strength: master passwords scoring below are rejected
    - login_max_attempts / login_window_seconds: 5 failures per 15 min per IP
    - reset_token_ttl_seconds: reset links are valid for 1 hour
    """

    db_path: Path = field(default_factory=lambda: Path("data/sentinel_vault.db"))
    audit_log_dir: Path = field(default_factory=lambda: Path("audit_logs"))
    environment: str = "development"

    # Key derivation
    kdf_iterations: int = 600_000
    salt_length: int = 32

    # Password policy
    min_password_strength: int = 60

    # Login rate limiting
    login_max_attempts: int = 5
    login_window_seconds: int = 15 * 60

    # Password reset
    reset_token_ttl_seconds: int = 60 * 60
    public_base_url: str = "http://localhost:8000"

    # Sessions
    session_idle_seconds: int = 24 * 60 * 60
    session_absolute_seconds: int = 7 * 24 * 60 * 60
    session_cookie_name: str = "sv_session"

    # Reverse proxies whose X-Forwarded-For header is honoured
    trusted_proxies: FrozenSet[str] = frozenset()

    # Breach oracle (k-anonymity range API)
    breach_check_enabled: bool = True
    breach_api_url: str = "https://api.pwnedpasswords.com/range"
    breach_timeout_seconds: float = 10.0

    # Activity / housekeeping
    activity_page_size: int = 20
    token_sweep_interval_seconds: int = 15 * 60

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def with_overrides(self, **kwargs) -> "Settings":
        """Return a copy with selected fields replaced."""
        return replace(self, **kwargs)


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build Settings from the environment (and an optional .env file)."""
    load_dotenv(dotenv_path=env_file, override=False)

    defaults = Settings()
    return Settings(
        db_path=Path(_env("DB_PATH", str(defaults.db_path))),
        audit_log_dir=Path(_env("AUDIT_LOG_DIR", str(defaults.audit_log_dir))),
        environment=_env("ENV", defaults.environment).strip().lower(),
        kdf_iterations=_env_int("KDF_ITERATIONS", defaults.kdf_iterations, minimum=1),
        salt_length=_env_int("SALT_LENGTH", defaults.salt_length, minimum=16),
        min_password_strength=_env_int(
            "MIN_PASSWORD_STRENGTH", defaults.min_password_strength
        ),
        login_max_attempts=_env_int(
            "LOGIN_MAX_ATTEMPTS", defaults.login_max_attempts, minimum=1
        ),
        login_window_seconds=_env_int(
            "LOGIN_WINDOW_SECONDS", defaults.login_window_seconds, minimum=1
        ),
        reset_token_ttl_seconds=_env_int(
            "RESET_TOKEN_TTL_SECONDS", defaults.reset_token_ttl_seconds, minimum=1
        ),
        public_base_url=_env("PUBLIC_BASE_URL", defaults.public_base_url).rstrip("/"),
        session_idle_seconds=_env_int(
            "SESSION_IDLE_SECONDS", defaults.session_idle_seconds, minimum=1
        ),
        session_absolute_seconds=_env_int(
            "SESSION_ABSOLUTE_SECONDS", defaults.session_absolute_seconds, minimum=1
        ),
        session_cookie_name=_env("SESSION_COOKIE_NAME", defaults.session_cookie_name),
        trusted_proxies=_env_set("TRUSTED_PROXIES"),
        breach_check_enabled=_env_bool(
            "BREACH_CHECK_ENABLED", defaults.breach_check_enabled
        ),
        breach_api_url=_env("BREACH_API_URL", defaults.breach_api_url).rstrip("/"),
        breach_timeout_seconds=_env_float(
            "BREACH_TIMEOUT_SECONDS", defaults.breach_timeout_seconds
        ),
        activity_page_size=_env_int(
            "ACTIVITY_PAGE_SIZE", defaults.activity_page_size, minimum=1
        ),
        token_sweep_interval_seconds=_env_int(
            "TOKEN_SWEEP_INTERVAL_SECONDS",
            defaults.token_sweep_interval_seconds,
            minimum=1,
        ),
    )


# Global settings instance
_settings: Optional[Settings] = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get global settings (loaded lazily from the environment)."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = load_settings()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Replace the global settings (None forces a reload on next access)."""
    global _settings
    with _settings_lock:
        _settings = settings
