# affiliate-network/config.py
"""
Configuration management for the affiliate network engine.
Loads from .env, validates the commission schedule.
"""
import os
import json
import logging
from typing import Any, Dict, List
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Configuration error exception."""
    pass


# Level 1 = direct selling (75 000) + level bonus (12 500), levels 2-10 = level bonus
DEFAULT_COMMISSION_SCHEDULE = {1: 87500, **{level: 12500 for level in range(2, 11)}}


class Config:
    """
    Configuration manager with static and dynamic values.

    Usage:
        # Load from .env
        Config.initialize_from_env()

        # Get value
        url = Config.get(Config.DATABASE_URL)

        # Override at runtime
        Config.set(Config.REQUIRE_ACTIVE_UPLINE, True)
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Database
    DATABASE_URL = "DATABASE_URL"

    # Commission engine
    COMMISSION_SCHEDULE = "COMMISSION_SCHEDULE"
    MAX_UPLINE_LEVELS = "MAX_UPLINE_LEVELS"
    REQUIRE_ACTIVE_UPLINE = "REQUIRE_ACTIVE_UPLINE"
    TREE_MAX_DEPTH = "TREE_MAX_DEPTH"

    # Orders
    ACCEPTED_ORDER_STATUSES = "ACCEPTED_ORDER_STATUSES"
    ORDER_REFERENCE_PREFIX = "ORDER_REFERENCE_PREFIX"

    # Webhook
    WEBHOOK_SECRET_KEY = "WEBHOOK_SECRET_KEY"
    WEBHOOK_HOST = "WEBHOOK_HOST"
    WEBHOOK_PORT = "WEBHOOK_PORT"

    # Logging
    LOG_LEVEL = "LOG_LEVEL"

    # ═══════════════════════════════════════════════════════════════════════
    # CRITICAL KEYS (must be present)
    # ═══════════════════════════════════════════════════════════════════════

    CRITICAL_KEYS = [
        DATABASE_URL,
        COMMISSION_SCHEDULE,
    ]

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file and the process environment.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                "sqlite:///affiliate.db"
            )

            # Commission engine
            cls._config[cls.COMMISSION_SCHEDULE] = cls._parse_schedule(
                os.getenv("COMMISSION_SCHEDULE")
            )
            cls._config[cls.MAX_UPLINE_LEVELS] = int(os.getenv("MAX_UPLINE_LEVELS", "10"))
            cls._config[cls.REQUIRE_ACTIVE_UPLINE] = (
                os.getenv("REQUIRE_ACTIVE_UPLINE", "false").lower() == "true"
            )
            cls._config[cls.TREE_MAX_DEPTH] = int(os.getenv("TREE_MAX_DEPTH", "10"))

            # Orders
            cls._config[cls.ACCEPTED_ORDER_STATUSES] = cls._parse_list(
                os.getenv("ACCEPTED_ORDER_STATUSES", "completed,processing")
            )
            cls._config[cls.ORDER_REFERENCE_PREFIX] = os.getenv("ORDER_REFERENCE_PREFIX", "WC")

            # Webhook
            cls._config[cls.WEBHOOK_SECRET_KEY] = os.getenv("WEBHOOK_SECRET_KEY")
            cls._config[cls.WEBHOOK_HOST] = os.getenv("WEBHOOK_HOST", "127.0.0.1")
            cls._config[cls.WEBHOOK_PORT] = int(os.getenv("WEBHOOK_PORT", "8080"))

            # Logging
            cls._config[cls.LOG_LEVEL] = os.getenv("LOG_LEVEL", "INFO").upper()

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

    @staticmethod
    def _parse_schedule(raw: str) -> Dict[int, Any]:
        """
        Parse COMMISSION_SCHEDULE JSON into {level: amount}.

        Keys are level numbers (JSON object keys are strings), values are
        numbers or percentage strings such as "10%".
        """
        if not raw:
            return dict(DEFAULT_COMMISSION_SCHEDULE)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse COMMISSION_SCHEDULE JSON: {e}")
            raise ConfigurationError(f"Invalid COMMISSION_SCHEDULE: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError("COMMISSION_SCHEDULE must be a JSON object")

        try:
            return {int(level): value for level, value in data.items()}
        except ValueError as e:
            raise ConfigurationError(f"Invalid level in COMMISSION_SCHEDULE: {e}")

    @staticmethod
    def _parse_list(raw: str) -> List[str]:
        return [item.strip().lower() for item in (raw or "").split(",") if item.strip()]

    @classmethod
    def validate_critical_keys(cls) -> None:
        """
        Validate that all critical configuration keys are present.

        Raises:
            ConfigurationError: If any critical key is missing
        """
        missing = []
        for key in cls.CRITICAL_KEYS:
            if not cls.get(key):
                missing.append(key)

        if missing:
            error_msg = f"Missing critical configuration keys: {', '.join(missing)}"
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("All critical configuration keys validated")

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return cls._config.get(key, default)

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value (for dynamic updates).

        Args:
            key: Configuration key
            value: New value
            source: Source of the update (for logging)
        """
        cls._config[key] = value
        logger.debug(f"Config updated: {key} = {value} (source: {source})")

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        """
        Get all configuration values.

        Returns:
            Copy of configuration dictionary
        """
        return cls._config.copy()
