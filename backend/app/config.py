import math
import os
import logging
from typing import Any, List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, computed_field
from pydantic_settings import BaseSettings

# Get logger instance
logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

# Bounds for the plugin configuration values
DEFAULT_CLI_PATH = "openclaw"
DEFAULT_TIMEOUT_MS = 8000
MIN_TIMEOUT_MS = 2000
MAX_TIMEOUT_MS = 20000
DEFAULT_USAGE_DAYS = 7
MIN_USAGE_DAYS = 1
MAX_USAGE_DAYS = 90


class Settings(BaseSettings):
    # Application settings
    DEBUG: bool = os.getenv("DEBUG") == "True"
    LOG_LEVEL: str = "INFO"

    # Prefix the widget router is mounted under (empty = mounted at root)
    API_PREFIX: str = ""

    # --- Plugin configuration (raw, resolved per request) ---
    # Secret expected in "Authorization: Bearer <token>". Unset = not configured.
    WIDGET_API_TOKEN: Optional[str] = None
    OPENCLAW_CLI_PATH: str = DEFAULT_CLI_PATH
    # Kept as raw strings so a bad value falls back to the default instead of failing startup
    GATEWAY_TIMEOUT_MS: Optional[str] = None
    USAGE_DAYS: Optional[str] = None

    # CORS Settings (optional, comma separated)
    CORS_ALLOWED_ORIGINS_STR: Optional[str] = os.getenv("CORS_ALLOWED_ORIGINS")

    @computed_field
    @property
    def CORS_ALLOWED_ORIGINS(self) -> List[str]:
        if not self.CORS_ALLOWED_ORIGINS_STR:
            return []
        # Split by comma and remove any leading/trailing whitespace from each origin
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS_STR.split(',') if origin.strip()]

    # Development Server Settings
    DEV_SERVER_HOST: str = os.getenv("DEV_SERVER_HOST", "0.0.0.0") # Optional with default
    DEV_SERVER_PORT: int = int(os.getenv("DEV_SERVER_PORT", "8000")) # Optional with default
    DEV_SERVER_RELOAD: bool = os.getenv("DEV_SERVER_RELOAD", "False") == "True" # Optional with default

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "allow"  # Allow extra environment variables
    }

    def plugin_config(self) -> dict:
        """Raw plugin configuration, keyed the way the host delivers it."""
        return {
            "apiToken": self.WIDGET_API_TOKEN,
            "cliPath": self.OPENCLAW_CLI_PATH,
            "timeoutMs": self.GATEWAY_TIMEOUT_MS,
            "usageDays": self.USAGE_DAYS,
        }


class BridgeConfig(BaseModel):
    """Validated plugin configuration for a single request."""
    api_token: str
    cli_path: str
    timeout_ms: int
    default_days: int

    model_config = {"frozen": True}

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)


def _coerce_number(value: Any, default: int) -> float:
    """Loose numeric coercion: missing, zero, NaN or unparseable values give the default."""
    if value is None:
        return default
    if isinstance(value, bool):
        number = float(value)
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number) or number == 0:
        return default
    return number


def _clamp(value: float, lower: int, upper: int) -> int:
    return int(math.floor(max(lower, min(upper, value))))


def resolve_bridge_config(raw: Optional[Mapping[str, Any]]) -> BridgeConfig:
    """Builds a BridgeConfig from a raw plugin configuration mapping.

    Never raises: every value has a default and numeric values are clamped
    into their allowed range.
    """
    raw = raw or {}
    api_token = str(raw.get("apiToken") or "").strip()
    cli_path = str(raw.get("cliPath") or DEFAULT_CLI_PATH).strip()
    timeout_ms = _clamp(
        _coerce_number(raw.get("timeoutMs"), DEFAULT_TIMEOUT_MS), MIN_TIMEOUT_MS, MAX_TIMEOUT_MS
    )
    default_days = _clamp(
        _coerce_number(raw.get("usageDays"), DEFAULT_USAGE_DAYS), MIN_USAGE_DAYS, MAX_USAGE_DAYS
    )
    return BridgeConfig(
        api_token=api_token,
        cli_path=cli_path or DEFAULT_CLI_PATH,
        timeout_ms=timeout_ms,
        default_days=default_days,
    )


settings = Settings()

# Example usage and check
if __name__ == "__main__":
    print("Settings loaded successfully:")
    resolved = resolve_bridge_config(settings.plugin_config())
    print(f"  cli_path={resolved.cli_path} timeout_ms={resolved.timeout_ms} "
          f"default_days={resolved.default_days} configured={resolved.is_configured}")
