"""
Tests for environment-driven Settings.
"""

from pathlib import Path

import pytest

from sentinel_vault.config import Settings, get_settings, load_settings, set_settings

MISSING_ENV_FILE = Path("/nonexistent/sentinel.env")


class TestLoadSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            "SENTINEL_KDF_ITERATIONS",
            "SENTINEL_ENV",
            "SENTINEL_DB_PATH",
            "SENTINEL_TRUSTED_PROXIES",
        ):
            monkeypatch.delenv(name, raising=False)
        settings = load_settings(MISSING_ENV_FILE)
        assert settings.kdf_iterations == 600_000
        assert settings.login_max_attempts == 5
        assert settings.login_window_seconds == 900
        assert settings.reset_token_ttl_seconds == 3600
        assert settings.min_password_strength == 60
        assert not settings.is_production
        assert settings.trusted_proxies == frozenset()

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SENTINEL_DB_PATH", str(tmp_path / "v.db"))
        monkeypatch.setenv("SENTINEL_KDF_ITERATIONS", "1000")
        monkeypatch.setenv("SENTINEL_ENV", "Production")
        monkeypatch.setenv("SENTINEL_PUBLIC_BASE_URL", "https://vault.example.com/")
        monkeypatch.setenv("SENTINEL_BREACH_CHECK_ENABLED", "no")
        monkeypatch.setenv("SENTINEL_TRUSTED_PROXIES", "10.0.0.1, 10.0.0.2,")

        settings = load_settings(MISSING_ENV_FILE)
        assert settings.db_path == tmp_path / "v.db"
        assert settings.kdf_iterations == 1000
        assert settings.is_production
        assert settings.public_base_url == "https://vault.example.com"
        assert settings.breach_check_enabled is False
        assert settings.trusted_proxies == frozenset({"10.0.0.1", "10.0.0.2"})

    def test_env_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("SENTINEL_LOGIN_MAX_ATTEMPTS", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("SENTINEL_LOGIN_MAX_ATTEMPTS=9\n")
        try:
            assert load_settings(env_file).login_max_attempts == 9
        finally:
            monkeypatch.delenv("SENTINEL_LOGIN_MAX_ATTEMPTS", raising=False)

    def test_real_env_beats_env_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SENTINEL_LOGIN_MAX_ATTEMPTS", "3")
        env_file = tmp_path / ".env"
        env_file.write_text("SENTINEL_LOGIN_MAX_ATTEMPTS=9\n")
        assert load_settings(env_file).login_max_attempts == 3

    @pytest.mark.parametrize(
        "name, value",
        [
            ("SENTINEL_KDF_ITERATIONS", "many"),
            ("SENTINEL_KDF_ITERATIONS", "0"),
            ("SENTINEL_SALT_LENGTH", "8"),
            ("SENTINEL_BREACH_TIMEOUT_SECONDS", "soon"),
        ],
    )
    def test_invalid_values_rejected(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError, match=name):
            load_settings(MISSING_ENV_FILE)


class TestGlobalSettings:
    def test_set_and_get(self, tmp_path):
        custom = Settings(db_path=tmp_path / "x.db")
        set_settings(custom)
        assert get_settings() is custom

    def test_with_overrides_copies(self):
        base = Settings()
        changed = base.with_overrides(kdf_iterations=1)
        assert changed.kdf_iterations == 1
        assert base.kdf_iterations == 600_000
