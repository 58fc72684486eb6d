"""Application configuration using Pydantic Settings."""

import logging
from typing import Literal

from pydantic_settings import BaseSettings


class TaklagetConfig(BaseSettings):
    """Application configuration loaded from environment variables."""

    environment: Literal["dev", "staging", "prod"] = "dev"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    app_base_url: str = "https://taklaget.app"

    findings_collection: str = "validation_errors"
    # 0 keeps findings as a passive log with no operator alert
    findings_alert_threshold: int = 0

    email_enabled: bool = False
    follow_up_days: int = 7
    escalation_days: int = 14
    expiry_days: int = 30
    max_follow_up_attempts: int = 3

    model_config = {"env_prefix": "TAKLAGET_", "case_sensitive": False}


def configure_logging(config: TaklagetConfig | None = None) -> None:
    """Apply the configured log level to the root logger."""
    config = config or TaklagetConfig()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["TaklagetConfig", "configure_logging"]
