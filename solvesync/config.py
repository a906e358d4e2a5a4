from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # ── Google Gemini (mistake analysis) ────────────────────────────────
    gemini_api_key: str = ""
    gemini_model: str = "gemini-3-flash-preview"

    # ── Backend sync ────────────────────────────────────────────────────
    backend_base_url: str = "https://traverse-backend-api.azurewebsites.net"

    # ── GitHub (code-host push) ─────────────────────────────────────────
    github_token: str = ""
    github_owner: str = ""
    github_repo: str = ""
    github_branch: str = "main"
    github_push_enabled: bool = True

    # ── Attempt tracking ────────────────────────────────────────────────
    # Run failures and cumulative submit failures latch analysis independently.
    run_failure_threshold: int = 2
    submit_failure_threshold: int = 3
    # Captured code must be strictly longer than this to count as an attempt.
    min_code_length: int = 10

    # ── Pipeline / channel timing ───────────────────────────────────────
    platform: str = "takeuforward"
    settle_seconds: float = 2.0
    code_data_max_age_seconds: int = 60
    handshake_timeout_seconds: float = 3.0
    request_timeout_seconds: int = 30

    # ── General ─────────────────────────────────────────────────────────
    # Empty path keeps everything in memory.
    storage_path: str = ""
    debug_mode: bool = False

    @property
    def storage_file(self) -> Path | None:
        return Path(self.storage_path) if self.storage_path else None


@lru_cache
def get_settings() -> Settings:
    return Settings()
