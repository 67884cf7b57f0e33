"""
Configuration for the OCCI category model.

All configuration comes from environment variables with the OCCI_ prefix.

Invariants:
    - All settings have defaults suitable for local use
    - Settings are read once at startup and passed explicitly

How to change safely:
    - Add new settings with defaults that keep current behaviour
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from .render import OutputFormat


class Settings(BaseSettings):
    """Runtime configuration."""

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    # Rendering
    output_format: OutputFormat = Field(default=OutputFormat.TEXT)

    # Catalogue
    load_infrastructure: bool = Field(
        default=True, description="Register the built-in OCCI categories at startup"
    )
    strict_refresh: bool = Field(
        default=True,
        description="Fail a catalogue reload on conflicting definitions instead of skipping them",
    )

    model_config = {"env_prefix": "OCCI_"}
