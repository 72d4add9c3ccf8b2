"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LedgerConfig(BaseSettings):
    """Bank ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
    )

    # Database configuration
    database_path: str = "bank_ledger.db"

    # Bank identity
    bank_name: str = "Botswana Ledger Bank"
    bank_code: str = "BWB"
    currency: str = "BWP"

    # ID generation seeds (added to the persisted record counts)
    customer_id_start: int = 1000
    account_number_start: int = 10000

    # Default administrator seeded on first run
    default_admin_user_id: str = "admin"
    default_admin_username: str = "Administrator"
    default_admin_password: str = "admin123"

    # Security configuration
    password_min_length: int = 6
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 8

    # Logging configuration
    log_level: str = "INFO"
    log_file: Optional[str] = None  # If None, logs to stderr

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
