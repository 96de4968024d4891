"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from storyloom.core.errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.7
# The oracle backend regularly takes tens of seconds for long storyboards
DEFAULT_ORACLE_TIMEOUT_S = 60.0
DEFAULT_DB_PATH = Path("data/storyloom.db")


def _parse_origins(raw: str) -> list[str]:
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["http://localhost:3000", "http://127.0.0.1:3000"]


@dataclass(frozen=True)
class Settings:
    """Process-wide settings.

    Attributes:
        openai_api_key: Credential for the oracle backend. Empty when unset.
        openai_base_url: Base URL of the OpenAI-compatible API.
        model: Chat model name.
        temperature: Sampling temperature sent with every request.
        oracle_timeout_s: Per-attempt client-side timeout.
        db_path: SQLite database for generated records.
        allowed_origins: CORS origins for the HTTP adapter.
    """

    openai_api_key: str = ""
    openai_base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    oracle_timeout_s: float = DEFAULT_ORACLE_TIMEOUT_S
    db_path: Path = DEFAULT_DB_PATH
    allowed_origins: list[str] = field(default_factory=lambda: _parse_origins(""))

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed.
        """
        try:
            temperature = float(os.environ.get("STORYLOOM_TEMPERATURE", DEFAULT_TEMPERATURE))
            timeout = float(os.environ.get("STORYLOOM_ORACLE_TIMEOUT_S", DEFAULT_ORACLE_TIMEOUT_S))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY", "").strip(),
            openai_base_url=os.environ.get("STORYLOOM_OPENAI_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            model=os.environ.get("STORYLOOM_MODEL", DEFAULT_MODEL),
            temperature=temperature,
            oracle_timeout_s=timeout,
            db_path=Path(os.environ.get("STORYLOOM_DB_PATH", str(DEFAULT_DB_PATH))),
            allowed_origins=_parse_origins(os.environ.get("STORYLOOM_ALLOWED_ORIGINS", "")),
        )

    def require_api_key(self) -> str:
        """Return the oracle credential or fail before any oracle call is made."""
        if not self.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured.")
        return self.openai_api_key
