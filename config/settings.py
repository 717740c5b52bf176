"""Runtime configuration for the coaching site backend."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGGER = logging.getLogger("config.settings")


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def default_program_price_ids() -> Dict[str, str]:
    return {
        "strength": "price_id_for_strength",
        "complete": "price_id_for_complete",
        "group": "price_id_for_group",
    }


class Settings(BaseSettings):
    """Container for runtime configuration values.

    Values come from the environment or a ``.env`` file next to the process
    working directory, following the usual ``pydantic-settings`` conventions
    (``STRIPE_SECRET_KEY`` populates ``stripe_secret_key`` and so on).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_dir: Path = Field(default_factory=_project_root)
    static_dir: Path = Field(default_factory=lambda: _project_root() / "public")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    allowed_origins: str = Field(default="https://fitnessharleyquinn.netlify.app")

    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    currency: str = Field(default="usd")
    billing_interval: str = Field(default="month")

    use_program_price_ids: bool = Field(default=False)
    program_price_ids: Dict[str, str] = Field(default_factory=default_program_price_ids)

    log_level: str = Field(default="INFO")
    log_file: Path | None = None

    @staticmethod
    def _split_candidates(raw: str) -> List[str]:
        separators = [",", "\n", "\r", ";"]
        candidates: List[str] = [raw]
        for separator in separators:
            next_candidates: List[str] = []
            for candidate in candidates:
                if separator in candidate:
                    next_candidates.extend(candidate.split(separator))
                else:
                    next_candidates.append(candidate)
            candidates = next_candidates
        return [item.strip() for item in candidates if item and item.strip()]

    @field_validator("currency", "billing_interval", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def cors_origins(self) -> List[str]:
        return self._split_candidates(self.allowed_origins)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings to avoid re-reading the environment."""

    try:
        return Settings()
    except ValidationError as exc:
        invalid = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
        LOGGER.error("Invalid configuration for %s; using their defaults", ", ".join(invalid))
        overrides = {
            name: Settings.model_fields[name].get_default(call_default_factory=True)
            for name in invalid
            if name in Settings.model_fields
        }
        return Settings(**overrides)
