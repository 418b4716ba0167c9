"""
Runtime configuration for the relay bot.

Values are read from the environment once at startup and carried around in
an immutable BotConfig. Nothing else in the package reads os.environ.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------
DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama3-70b-8192"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_LOG_LEVEL = "INFO"

REQUIRED_VARIABLES = ("TELEGRAM_BOT_TOKEN", "GROQ_API_KEY")


class ConfigError(Exception):
    """Raised when the environment cannot produce a usable configuration."""


@dataclass(frozen=True)
class BotConfig:
    """Resolved configuration, passed explicitly to the components."""
    telegram_token: str
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = None

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks
        return (
            f"BotConfig(base_url={self.base_url!r}, model={self.model!r}, "
            f"http_timeout={self.http_timeout}, log_level={self.log_level!r})"
        )


def load_config(environ: Optional[Mapping[str, str]] = None) -> BotConfig:
    """
    Build a BotConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Raises:
        ConfigError: if a required variable is missing or a value is invalid
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARIABLES if not env.get(name, "").strip()]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    timeout_raw = env.get("HTTP_TIMEOUT", "").strip()
    try:
        http_timeout = float(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT
    except ValueError:
        raise ConfigError(f"HTTP_TIMEOUT must be a number, got {timeout_raw!r}")
    if http_timeout <= 0:
        raise ConfigError(f"HTTP_TIMEOUT must be positive, got {http_timeout}")

    return BotConfig(
        telegram_token=env["TELEGRAM_BOT_TOKEN"].strip(),
        api_key=env["GROQ_API_KEY"].strip(),
        base_url=(env.get("GROQ_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        model=env.get("GROQ_MODEL") or DEFAULT_MODEL,
        http_timeout=http_timeout,
        log_level=env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL,
        log_file=env.get("RELAY_BOT_LOG") or None,
    )
