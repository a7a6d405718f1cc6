"""
Configuration for the purchase-order lifecycle service.
"""

# Load environment variables FIRST
from dotenv import load_dotenv
load_dotenv()

import os
from typing import Optional


class Config:
    """Base configuration."""

    # LLM Configuration (PDF extraction)
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    LLM_MOCK_MODE: bool = os.getenv("LLM_MOCK_MODE", "false").lower() == "true"  # Mock mode for testing
    LLM_API_KEY: str = os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
    GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", "")
    LLM_API_BASE: Optional[str] = os.getenv("LLM_API_BASE", None)
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.3"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "2000"))
    LLM_TIMEOUT: int = 30

    # Extraction retry policy
    EXTRACTION_MAX_ATTEMPTS: int = int(os.getenv("EXTRACTION_MAX_ATTEMPTS", "3"))
    EXTRACTION_BACKOFF_SECONDS: float = float(os.getenv("EXTRACTION_BACKOFF_SECONDS", "1.0"))
    EXTRACTION_MIN_TEXT_LENGTH: int = 20

    # Storage
    PO_DATABASE_PATH: str = os.getenv(
        "PO_DATABASE_PATH",
        os.path.join(os.path.dirname(__file__), "data", "purchase_orders.json"),
    )
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB
    DEFAULT_BATCH_SIZE: int = 500

    # Metrics
    METRICS_CACHE_TTL: float = float(os.getenv("METRICS_CACHE_TTL", "60"))  # seconds
    METRICS_CACHE_CLEANUP_INTERVAL: float = float(os.getenv("METRICS_CACHE_CLEANUP_INTERVAL", "300"))
    METRICS_MAX_EVENTS: int = 1000  # per metric type

    # Search
    SEARCH_FUZZY_THRESHOLD: float = 0.85

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str = os.getenv("LOG_FILE", "po_lifecycle.log")

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_DEBUG: bool = os.getenv("API_DEBUG", "false").lower() == "true"

    @classmethod
    def validate(cls) -> None:
        """Validate configuration."""
        if cls.LLM_PROVIDER not in ["openai", "gemini", "mock"]:
            raise ValueError(f"Invalid LLM_PROVIDER: {cls.LLM_PROVIDER}")

        if cls.EXTRACTION_MAX_ATTEMPTS < 1:
            raise ValueError("EXTRACTION_MAX_ATTEMPTS must be at least 1")

        if cls.METRICS_CACHE_TTL <= 0 or cls.METRICS_CACHE_CLEANUP_INTERVAL <= 0:
            raise ValueError("Metrics cache TTL and cleanup interval must be positive")


class DevelopmentConfig(Config):
    """Development configuration."""
    LOG_LEVEL = "DEBUG"
    API_DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    LLM_TEMPERATURE = 0.2
    LOG_LEVEL = "INFO"
    API_DEBUG = False


class TestConfig(Config):
    """Test configuration."""
    LLM_TEMPERATURE = 0.0
    LLM_MOCK_MODE = True
    LOG_LEVEL = "DEBUG"
    EXTRACTION_BACKOFF_SECONDS = 0.0


def get_config(env: str = None) -> Config:
    """Get configuration based on environment."""
    if env is None:
        env = os.getenv("ENV", "development").lower()

    if env == "production":
        config = ProductionConfig()
    elif env == "test":
        config = TestConfig()
    else:
        config = DevelopmentConfig()

    # Validate configuration on creation
    config.validate()
    return config
