# ABOUTME: Configuration management for the RxNorm drug lookup service.
# ABOUTME: Loads settings from environment variables with sensible defaults.

import os
from dotenv import load_dotenv

load_dotenv()

VALIDATION_MODES = ("status", "suppress")


class Config:
    """Application configuration."""

    # RxNav upstream settings
    RXNORM_BASE_URL: str = os.getenv("RXNORM_BASE_URL", "https://rxnav.nlm.nih.gov/REST")
    RXNORM_TIMEOUT: float = float(os.getenv("RXNORM_TIMEOUT", "10.0"))

    # Lookup settings
    RXNORM_CACHE_TTL: int = int(os.getenv("RXNORM_CACHE_TTL", "86400"))
    RXNORM_SEARCH_LIMIT: int = int(os.getenv("RXNORM_SEARCH_LIMIT", "5"))
    RXNORM_SEARCH_TTY: str = os.getenv("RXNORM_SEARCH_TTY", "SBD")
    RXCUI_VALIDATION_MODE: str = os.getenv("RXCUI_VALIDATION_MODE", "status").lower()
    CACHE_FAILED_LOOKUPS: bool = (
        os.getenv("CACHE_FAILED_LOOKUPS", "false").lower() == "true"
    )

    # HTTP pooling settings
    HTTP_MAX_CONNECTIONS: int = int(os.getenv("HTTP_MAX_CONNECTIONS", "20"))
    HTTP_MAX_KEEPALIVE: int = int(os.getenv("HTTP_MAX_KEEPALIVE", "10"))

    # Cache settings
    CACHE_MAX_SIZE: int = int(os.getenv("CACHE_MAX_SIZE", "1000"))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        if cls.RXCUI_VALIDATION_MODE not in VALIDATION_MODES:
            raise ValueError(
                f"RXCUI_VALIDATION_MODE must be one of {VALIDATION_MODES}, "
                f"got '{cls.RXCUI_VALIDATION_MODE}'"
            )
        if cls.RXNORM_TIMEOUT <= 0:
            raise ValueError("RXNORM_TIMEOUT must be positive")
        if cls.RXNORM_CACHE_TTL <= 0:
            raise ValueError("RXNORM_CACHE_TTL must be positive")
        if cls.RXNORM_SEARCH_LIMIT <= 0:
            raise ValueError("RXNORM_SEARCH_LIMIT must be positive")


config = Config()
