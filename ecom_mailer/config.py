from __future__ import annotations

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Endpoint configuration loaded from environment / .env file.

    Built once in ``main()`` and passed to every check; nothing reads it
    from module state.
    """

    # env_ignore_empty: a blank IMAP_PORT= falls back to the default
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_ignore_empty": True,
        "extra": "ignore",
    }

    # Mailbox credentials (shared by IMAP login and SMTP AUTH)
    smtp_user: str = ""
    smtp_pass: str = ""

    # IMAP (mail retrieval)
    imap_host: str = ""
    imap_port: int = 993
    imap_tls: bool = True
    imap_tls_verify: bool = False  # self-signed certs on the mail host

    # SMTP (mail relay)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_secure: bool = False  # False = plain connect + STARTTLS if offered

    # PostgreSQL
    db_url: str = ""

    # Ollama
    ollama_base_url: str = ""

    # Service
    service_name: str = "ecom-mailer"
    heartbeat_interval_seconds: float = 60.0
    check_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"

    @field_validator("heartbeat_interval_seconds", "check_timeout_seconds")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v!r}")
        return level

    @field_validator("ollama_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


def load_settings(env_file: str | None = ".env") -> Settings:
    """Read settings from the environment, with ``env_file`` as fallback."""
    return Settings(_env_file=env_file)
