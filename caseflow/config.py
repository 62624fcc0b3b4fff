"""
Configuration for the Caseflow workflow engine service.
"""

import os
from dataclasses import dataclass, field
from typing import List


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Config:
    """Application configuration."""

    # Engine
    tool_timeout_seconds: float = float(os.getenv("TOOL_TIMEOUT_SECONDS", "10"))
    execution_ttl_seconds: float = float(os.getenv("EXECUTION_TTL_SECONDS", "3600"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))
    cors_origins: List[str] = field(
        default_factory=lambda: _split(os.getenv("CORS_ORIGINS", "*"))
    )


config = Config()
