"""
Settings for the commerce session engine.

Design decisions:
- A single Pydantic model holds every tunable, so tests can build one inline
- Environment variables (DIGITAILOR_*) override the defaults via from_env()
- Components take settings through their constructors; the module-level
  singleton is only a convenience for the CLI and the host API
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


ENV_PREFIX = "DIGITAILOR_"


class SessionSettings(BaseModel):
    """Tunable behaviour of the session engine."""

    key_prefix: str = Field(
        default="",
        description="Prefix applied to every persisted key (e.g. 'digitailor_')",
    )
    storage_path: Optional[Path] = Field(
        default=None,
        description="JSON file backing persistence; in-memory storage when unset",
    )
    allow_guest_cart: bool = Field(
        default=False,
        description="Let guests add items instead of failing with AUTH_REQUIRED",
    )
    scope_notifications_by_identity: bool = Field(
        default=False,
        description="Key the notification list per identity instead of one shared list",
    )
    poll_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Delay between order status polls in watch()",
    )
    feed_base_url: str = Field(
        default="http://localhost:5000",
        description="Base URL of the order status backend",
    )
    feed_timeout_seconds: float = Field(default=10.0, gt=0)
    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "SessionSettings":
        """
        Build settings from DIGITAILOR_* environment variables.

        Unset variables keep their defaults. Values are validated by Pydantic,
        so "true"/"false" and numeric strings are accepted.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            env_name = ENV_PREFIX + name.upper()
            if env_name in environ:
                values[name] = environ[env_name]
        return cls(**values)


# Module-level singleton for convenience
_settings: Optional[SessionSettings] = None


def get_settings() -> SessionSettings:
    """Get the default settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = SessionSettings.from_env()
    return _settings


def reset_settings(settings: Optional[SessionSettings] = None) -> Optional[SessionSettings]:
    """Replace the default settings (useful for testing)."""
    global _settings
    _settings = settings
    return _settings
