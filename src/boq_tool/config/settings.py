"""
Centralized settings for the BOQ tool.

Values come from environment variables, optionally loaded from a .env
file at the project root.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from ..engine.models import MISSING_POLICIES, MISSING_ZERO


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 4 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class Letterhead:
    """Branding printed on exported PDF quotations."""
    company_name: str = "Estimation Pro"
    signatory_name: str = ""
    signatory_title: str = ""
    address_lines: tuple = ()
    contact_lines: tuple = ()
    links: tuple = ()
    disclaimer: str = (
        "Disclaimer: This communication does not constitute any binding commitment "
        "and is subject to contract and final approval."
    )

    @classmethod
    def from_env(cls) -> 'Letterhead':
        def lines(var: str) -> tuple:
            raw = os.getenv(var, "")
            return tuple(part.strip() for part in raw.split("|") if part.strip())

        default = cls()
        return cls(
            company_name=os.getenv("BOQ_COMPANY_NAME", default.company_name),
            signatory_name=os.getenv("BOQ_SIGNATORY_NAME", ""),
            signatory_title=os.getenv("BOQ_SIGNATORY_TITLE", ""),
            address_lines=lines("BOQ_ADDRESS_LINES"),
            contact_lines=lines("BOQ_CONTACT_LINES"),
            links=lines("BOQ_LINKS"),
            disclaimer=os.getenv("BOQ_DISCLAIMER", default.disclaimer),
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    project_root: Path

    # Pricing
    vat_rate: float = 0.05
    missing_value_policy: str = MISSING_ZERO

    # Extraction service
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash-latest"

    # Image fetching for PDF export
    image_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    letterhead: Letterhead = field(default_factory=Letterhead)

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the environment (and .env if present)."""
        root = project_root or get_project_root()
        load_dotenv(root / '.env')

        policy = os.getenv("BOQ_MISSING_VALUE_POLICY", MISSING_ZERO).strip().lower()
        if policy not in MISSING_POLICIES:
            raise ValueError(
                f"BOQ_MISSING_VALUE_POLICY must be one of {MISSING_POLICIES}, got {policy!r}"
            )

        return cls(
            project_root=root,
            vat_rate=_env_float("BOQ_VAT_RATE", 0.05),
            missing_value_policy=policy,
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            gemini_model=os.getenv("BOQ_GEMINI_MODEL", "gemini-1.5-flash-latest"),
            image_timeout=_env_float("BOQ_IMAGE_TIMEOUT", 10.0),
            log_level=os.getenv("BOQ_LOG_LEVEL", "INFO"),
            log_json=_env_bool("BOQ_LOG_JSON"),
            letterhead=Letterhead.from_env(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
