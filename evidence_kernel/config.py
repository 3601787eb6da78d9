"""
Evidence Kernel configuration.

Settings come from the environment (prefix EVIDENCE_KERNEL_) or a local .env
file. The pure engine functions take their thresholds as arguments; only the
API layer reads these settings.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class KernelSettings(BaseSettings):
    # Timeline Builder
    min_duration_minutes: int = 1

    # Verifier: default | lenient | strict
    verification_strictness: str = "default"

    # Evidence Block Synthesizer
    distraction_threshold_minutes: int = 10
    min_screen_time_block_minutes: int = 10
    screen_time_gap_minutes: int = 15

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="EVIDENCE_KERNEL_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> KernelSettings:
    """Process-wide settings, read once."""
    return KernelSettings()


settings = get_settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply a log level to the package logger."""
    resolved = (level or settings.log_level).upper()
    logger = logging.getLogger("evidence_kernel")
    logger.setLevel(getattr(logging, resolved, logging.INFO))
    if not logging.getLogger().handlers and not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
