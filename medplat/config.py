"""
Runtime configuration for the MedPlat guideline service.

Values come from the environment (optionally a .env file). Nothing here is
validated beyond type coercion; bad values fall back to defaults.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        logger.warning(f"Invalid value for {name}, using default {default}")
        return default


def _parse_region_names(raw: Optional[str]) -> dict[str, str]:
    """Parse the integrator-supplied region code -> display name mapping."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"MEDPLAT_REGION_NAMES is not valid JSON: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning("MEDPLAT_REGION_NAMES must be a JSON object")
        return {}
    return {
        str(code).strip().lower(): str(name).strip()
        for code, name in data.items()
        if str(code).strip() and str(name).strip()
    }


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    llm_timeout_seconds: float = 90.0
    disable_llm: bool = False
    region_names: dict[str, str] = field(default_factory=dict)
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"
    log_json: bool = True


def load_settings() -> Settings:
    """Build settings from the current environment."""
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 90.0),
        disable_llm=_env_bool("DISABLE_LLM", False),
        region_names=_parse_region_names(os.getenv("MEDPLAT_REGION_NAMES")),
        cors_origins=origins,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_env_bool("LOG_JSON", True),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings singleton."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
