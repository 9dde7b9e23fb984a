# ldclash/config.py
import os
import sys
from dataclasses import dataclass, field
from typing import List, Literal

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

OutputStyle = Literal["plain", "sections"]

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.4
DEFAULT_TIMEOUT_SECONDS = 60.0


class ConfigurationError(RuntimeError):
    """Raised when the process is not configured well enough to serve requests."""


# ---------- Logging ----------
def setup_logger(level: str = "INFO") -> None:
    """Configure loguru with a single colorized stderr sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )


# ---------- Settings ----------
@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    openai_model: str = DEFAULT_MODEL
    openai_temperature: float = DEFAULT_TEMPERATURE
    openai_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    site_password: str = ""
    basic_auth_user: str = ""
    basic_auth_pass: str = ""
    auth_disabled: bool = False
    strict_validation: bool = True
    output_style: OutputStyle = "plain"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def basic_auth_enabled(self) -> bool:
        # Unconfigured credentials keep the gate on; only the explicit opt-out turns it off.
        return not self.auth_disabled


def clean_api_key(raw: str) -> str:
    """Trim whitespace and one pair of surrounding quotes copied in from a .env file."""
    key = (raw or "").strip()
    if key[:1] in ("'", '"'):
        key = key[1:]
    if key[-1:] in ("'", '"'):
        key = key[:-1]
    return key


def validate_api_key(key: str) -> str:
    if not key:
        raise ConfigurationError("Missing OPENAI_API_KEY in .env")
    # sk-proj- keys also start with sk-
    if not key.startswith("sk-"):
        raise ConfigurationError(
            "OPENAI_API_KEY looks wrong. .env must be: OPENAI_API_KEY=sk-... (no quotes, no spaces)."
        )
    return key


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def load_settings() -> Settings:
    """Read settings from the environment (and .env, loaded at import)."""
    style = (os.getenv("LDCLASH_OUTPUT_STYLE") or "plain").strip().lower()
    if style not in ("plain", "sections"):
        raise ConfigurationError(f"LDCLASH_OUTPUT_STYLE must be 'plain' or 'sections', got {style!r}")

    cors_env = os.getenv("CORS_ORIGINS", "*")
    cors_origins = ["*"] if cors_env == "*" else [origin.strip() for origin in cors_env.split(",") if origin.strip()]

    return Settings(
        openai_api_key=clean_api_key(os.getenv("OPENAI_API_KEY", "")),
        openai_model=(os.getenv("OPENAI_MODEL") or DEFAULT_MODEL).strip(),
        openai_temperature=_env_float("OPENAI_TEMPERATURE", DEFAULT_TEMPERATURE),
        openai_timeout_seconds=_env_float("OPENAI_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        site_password=(os.getenv("SITE_PASSWORD") or "").strip(),
        basic_auth_user=os.getenv("BASIC_AUTH_USER") or "",
        basic_auth_pass=os.getenv("BASIC_AUTH_PASS") or "",
        auth_disabled=_env_bool("LDCLASH_AUTH_DISABLED", False),
        strict_validation=_env_bool("LDCLASH_STRICT_VALIDATION", True),
        output_style=style,
        cors_origins=cors_origins,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    )
