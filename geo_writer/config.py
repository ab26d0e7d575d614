"""
Environment-driven configuration for GEO Writer.

Values are read from the process environment (the CLI loads a ``.env`` file
first with python-dotenv). Collaborator credentials are validated by the
client that needs them, so a missing key fails before any network call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Dict, Optional

from geo_writer.exceptions import ConfigurationError

DEFAULT_TEXT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_IMAGE_MODEL = "gemini-3-pro-image-preview"
DEFAULT_ORBIDI_BASE_URL = "https://eu.api.orbidi.com"
DEFAULT_WORDPRESS_BASE_URL = "https://masproposals.com"
DEFAULT_WORDPRESS_CATEGORY = "SEO On page - Blog"
DEFAULT_CLICKUP_URL_FIELD_ID = "959a5bb5-b1ac-44ec-b814-52f7b415ac91"
DEFAULT_CLICKUP_STATUS_FIELD_ID = "b39da2a6-e438-4786-aaa6-9774e49bfcc4"

# Settings attribute -> environment variable
ENV_VARS: Dict[str, str] = {
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "gemini_api_key": "GEMINI_API_KEY",
    "text_model": "GEO_TEXT_MODEL",
    "image_model": "GEO_IMAGE_MODEL",
    "orbidi_bearer_token": "ORBIDI_BEARER_TOKEN",
    "orbidi_api_key": "ORBIDI_API_KEY",
    "orbidi_base_url": "ORBIDI_BASE_URL",
    "wordpress_base_url": "WORDPRESS_BASE_URL",
    "wordpress_token": "WORDPRESS_TOKEN",
    "wordpress_category": "WORDPRESS_CATEGORY",
    "clickup_api_key": "CLICKUP_API_KEY",
    "clickup_url_field_id": "CLICKUP_URL_FIELD_ID",
    "clickup_status_field_id": "CLICKUP_STATUS_FIELD_ID",
    "prodline_api_key": "PRODLINE_API_KEY",
}


@dataclass
class PacingConfig:
    """Fixed pauses (seconds) between pipeline steps."""

    after_keywords: float = 0.5
    after_outline: float = 1.0
    before_publish: float = 0.5
    between_articles: float = 3.0
    between_accounts: float = 2.0
    between_sections: float = 0.2
    between_tracker_calls: float = 0.5
    image_retry_base: float = 0.8

    @classmethod
    def disabled(cls) -> "PacingConfig":
        return cls(**{f.name: 0.0 for f in fields(cls)})


@dataclass
class Settings:
    """Resolved runtime configuration."""

    anthropic_api_key: str = ""
    gemini_api_key: str = ""
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    orbidi_bearer_token: str = ""
    orbidi_api_key: str = ""
    orbidi_base_url: str = DEFAULT_ORBIDI_BASE_URL
    wordpress_base_url: str = DEFAULT_WORDPRESS_BASE_URL
    wordpress_token: str = ""
    wordpress_category: str = DEFAULT_WORDPRESS_CATEGORY
    clickup_api_key: str = ""
    clickup_url_field_id: str = DEFAULT_CLICKUP_URL_FIELD_ID
    clickup_status_field_id: str = DEFAULT_CLICKUP_STATUS_FIELD_ID
    prodline_api_key: str = ""
    pacing: PacingConfig = field(default_factory=PacingConfig)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Settings":
        """Build settings from environment variables, keeping defaults for unset ones."""
        env = os.environ if environ is None else environ
        values = {}
        for attr, var in ENV_VARS.items():
            raw = env.get(var)
            if raw is not None and raw.strip():
                values[attr] = raw.strip()
        return cls(**values)

    def require(self, *attrs: str) -> None:
        """Raise ConfigurationError naming every missing variable among ``attrs``."""
        missing = [ENV_VARS.get(a, a) for a in attrs if not getattr(self, a, "")]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )

    @property
    def has_clickup(self) -> bool:
        return bool(self.clickup_api_key)

    @property
    def has_prodline(self) -> bool:
        return bool(self.prodline_api_key)
