"""Configuration loading: JSON config file first, environment variables as fallback."""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("./config.json")

# Keys accepted in config.json, mapped to settings fields.
CONFIG_KEY_MAP = {
    "tenantId": "tenant_id",
    "clientId": "client_id",
    "clientSecret": "client_secret",
    "authenticationMethod": "authentication_method",
    "authority": "authority",
    "graphBaseUrl": "graph_base_url",
    "timeoutSeconds": "timeout_seconds",
}


class AuthenticationMethod(str, Enum):
    SERVICE_PRINCIPAL = "ServicePrincipal"
    INTERACTIVE = "Interactive"


class Settings(BaseSettings):
    """Report settings; environment variables use the ``CASE_REPORT_`` prefix."""

    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    authentication_method: AuthenticationMethod = AuthenticationMethod.SERVICE_PRINCIPAL

    authority: str = "https://login.microsoftonline.com"
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    timeout_seconds: float = 30.0
    device_code_poll_limit: int = 60

    model_config = SettingsConfigDict(
        env_prefix="CASE_REPORT_",
        case_sensitive=False,
        extra="ignore",
    )

    def missing_fields(self) -> list:
        missing = [
            name for name in ("tenant_id", "client_id") if not getattr(self, name)
        ]
        if (
            self.authentication_method is AuthenticationMethod.SERVICE_PRINCIPAL
            and not self.client_secret
        ):
            missing.append("client_secret")
        return missing


def load_environment(config_path: Path = DEFAULT_CONFIG_PATH) -> None:
    """Loads environment variables from a .env beside the config file, if present."""
    env_path = config_path.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
    else:
        load_dotenv(override=False)


def read_config_file(path: Path) -> Dict[str, Any]:
    """Reads config.json into settings field names; raises ConfigError if unreadable."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    values: Dict[str, Any] = {}
    for key, value in payload.items():
        field_name = CONFIG_KEY_MAP.get(key)
        if field_name and value not in (None, ""):
            values[field_name] = value
    return values


def load_settings(config_path: Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Builds Settings from the config file, falling back to the environment.

    File values take precedence; anything absent there is sourced from
    ``CASE_REPORT_*`` variables. Raises ConfigError when the merged result is
    invalid or lacks the credentials needed for the chosen method.
    """
    load_environment(config_path)

    try:
        file_values = read_config_file(config_path)
        logger.info("Loaded configuration from %s", config_path)
    except ConfigError as exc:
        logger.warning("%s; falling back to environment variables", exc)
        file_values = {}

    try:
        settings = Settings(**file_values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    missing = settings.missing_fields()
    if missing:
        raise ConfigError(
            "Incomplete configuration, missing: " + ", ".join(missing)
        )
    return settings
