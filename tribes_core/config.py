import logging
import sys
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TRIBES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App config
    DEBUG: bool = False

    # Game defaults
    DEFAULT_MAX_TURNS: int = 50
    MIN_PLAYERS: int = 2
    MAX_PLAYERS: int = 6
    STARTING_TREASURY: int = 0
    STARTING_UNITS: list[str] = ["settler", "warrior"]

    @field_validator("DEFAULT_MAX_TURNS", "MIN_PLAYERS", "MAX_PLAYERS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be a positive integer")
        return v

    @field_validator("STARTING_TREASURY")
    @classmethod
    def validate_treasury(cls, v: int) -> int:
        if v < 0:
            raise ValueError("STARTING_TREASURY cannot be negative")
        return v

    @field_validator("STARTING_UNITS")
    @classmethod
    def validate_starting_units(cls, v: list[str]) -> list[str]:
        from tribes_core.engine.rules import UNIT_DEFINITIONS

        unknown = [unit_type for unit_type in v if unit_type not in UNIT_DEFINITIONS]
        if unknown:
            raise ValueError(f"Unknown starting unit types: {unknown}")
        return v


def configure_logging(debug: bool = False) -> None:
    """Configure logging for the engine."""
    log_level = logging.DEBUG if debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    configure_logging(settings.DEBUG)
    logger.info("Settings loaded successfully")
    logger.debug(
        "Game defaults: max_turns=%d, players=%d-%d, starting_units=%s",
        settings.DEFAULT_MAX_TURNS,
        settings.MIN_PLAYERS,
        settings.MAX_PLAYERS,
        settings.STARTING_UNITS,
    )
    return settings
