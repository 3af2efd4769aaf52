from __future__ import annotations

from dataclasses import dataclass
import logging
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_AI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_AI_MODEL = "gemini-2.0-flash"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def env_str(name: str, default: str = "") -> str:
    value = os.getenv(name)
    return value if value is not None else default


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class JwtSettings:
    key: str = ""
    issuer: str = ""
    audience: str = ""
    expires_minutes: int = 60

    @classmethod
    def from_env(cls) -> "JwtSettings":
        return cls(
            key=env_str("JWT_KEY"),
            issuer=env_str("JWT_ISSUER"),
            audience=env_str("JWT_AUDIENCE"),
            expires_minutes=env_int("JWT_EXPIRES_MINUTES", 60),
        )


@dataclass(frozen=True)
class AiSettings:
    provider: str = "gemini"
    base_url: str = DEFAULT_AI_BASE_URL
    api_key: str = ""
    model: str = DEFAULT_AI_MODEL
    temperature: float = 0.2
    max_tokens: int = 1024
    organization: str | None = None
    api_key_header: str = "X-goog-api-key"
    use_bearer_prefix: bool = False

    @classmethod
    def from_env(cls) -> "AiSettings":
        return cls(
            provider=env_str("AI_PROVIDER", "gemini"),
            base_url=env_str("AI_BASE_URL", DEFAULT_AI_BASE_URL),
            api_key=env_str("AI_API_KEY"),
            model=env_str("AI_MODEL", DEFAULT_AI_MODEL),
            temperature=env_float("AI_TEMPERATURE", 0.2),
            max_tokens=env_int("AI_MAX_TOKENS", 1024),
            organization=os.getenv("AI_ORGANIZATION") or None,
            api_key_header=env_str("AI_API_KEY_HEADER", "X-goog-api-key"),
            use_bearer_prefix=env_bool("AI_USE_BEARER", False),
        )


@dataclass(frozen=True)
class SmtpSettings:
    host: str = ""
    port: int = 587
    enable_ssl: bool = True
    username: str = ""
    password: str = ""
    from_email: str = ""
    from_name: str = ""
    reset_link_base: str = ""

    @classmethod
    def from_env(cls) -> "SmtpSettings":
        return cls(
            host=env_str("SMTP_HOST"),
            port=env_int("SMTP_PORT", 587),
            enable_ssl=env_bool("SMTP_ENABLE_SSL", True),
            username=env_str("SMTP_USERNAME"),
            password=env_str("SMTP_PASSWORD"),
            from_email=env_str("SMTP_FROM_EMAIL"),
            from_name=env_str("SMTP_FROM_NAME"),
            reset_link_base=env_str("PASSWORD_RESET_LINK_BASE"),
        )


def configure_logging(level: str | None = None) -> None:
    resolved = (level or env_str("LOG_LEVEL", "INFO")).strip().upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)
