"""
CeyLog Runtime Configuration

Reads environment variables once per process into a ``Settings`` object that is
handed to the services that need it. Nothing in the application reads
``os.environ`` for limits or credentials after startup.

Example usage:
    settings = Settings.from_env()
    print(settings.max_request_size)  # 5242880
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ALLOWED_ORIGINS = "https://ceylog.com,https://app.ceylog.com"
DEFAULT_ALLOWED_EMAIL_DOMAINS = "gmail.com,outlook.com,yahoo.com,hotmail.com"
DEFAULT_CORS_ORIGINS = "https://ceylog.com,https://app.ceylog.com,http://localhost:3000"


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using default {default}")
        return default


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ["1", "true", "yes"]


@dataclass
class Settings:
    """Process-wide configuration for the CeyLog API."""

    allowed_origins: List[str] = field(default_factory=lambda: _split_csv(DEFAULT_ALLOWED_ORIGINS))
    allowed_email_domains: List[str] = field(default_factory=lambda: _split_csv(DEFAULT_ALLOWED_EMAIL_DOMAINS))
    max_request_size: int = 5 * 1024 * 1024
    max_report_size: int = 100 * 1024
    max_message_length: int = 1000

    rate_limit_max: int = 10
    rate_limit_window_seconds: int = 60 * 60

    postmark_token: Optional[str] = None
    report_email_from: str = "CeyLog Reports <reports@ceylog.com>"
    postmark_stream: str = "outbound"

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4"
    openai_match_model: str = "gpt-4-turbo-preview"

    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    base_url: str = "https://ceylog.com"

    firebase_credentials: Optional[str] = None
    firebase_project_id: Optional[str] = None

    log_level: str = "INFO"
    log_format: str = "json"
    cors_origins: List[str] = field(default_factory=lambda: _split_csv(DEFAULT_CORS_ORIGINS))
    ip_rate_limit_per_min: int = 10
    disable_ip_rate_limit: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Returns:
            Settings populated from the current environment

        Example:
            >>> os.environ["REPORT_RATE_LIMIT_MAX"] = "20"
            >>> Settings.from_env().rate_limit_max
            20
        """
        return cls(
            allowed_origins=_split_csv(os.environ.get("CEYLOG_ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)),
            allowed_email_domains=[
                d.lower() for d in _split_csv(
                    os.environ.get("CEYLOG_ALLOWED_EMAIL_DOMAINS", DEFAULT_ALLOWED_EMAIL_DOMAINS)
                )
            ],
            max_request_size=_env_int("MAX_REQUEST_SIZE_MB", 5) * 1024 * 1024,
            max_report_size=_env_int("MAX_REPORT_SIZE_KB", 100) * 1024,
            max_message_length=_env_int("MAX_MESSAGE_LENGTH", 1000),
            rate_limit_max=_env_int("REPORT_RATE_LIMIT_MAX", 10),
            rate_limit_window_seconds=_env_int("REPORT_RATE_LIMIT_WINDOW_SECONDS", 3600),
            postmark_token=os.environ.get("POSTMARK_API_TOKEN") or os.environ.get("POSTMARK_TOKEN"),
            report_email_from=os.environ.get("REPORT_EMAIL_FROM", "CeyLog Reports <reports@ceylog.com>"),
            postmark_stream=os.environ.get("POSTMARK_STREAM", "outbound"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-4"),
            openai_match_model=os.environ.get("OPENAI_MATCH_MODEL", "gpt-4-turbo-preview"),
            stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET"),
            base_url=os.environ.get("BASE_URL", "https://ceylog.com").rstrip("/"),
            firebase_credentials=os.environ.get("FIREBASE_CREDENTIALS"),
            firebase_project_id=os.environ.get("FIREBASE_PROJECT_ID"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "json"),
            cors_origins=_split_csv(os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)),
            ip_rate_limit_per_min=_env_int("RATE_LIMIT_PER_MIN", 10),
            disable_ip_rate_limit=_env_flag("CEYLOG_DISABLE_IP_RATELIMIT"),
        )
