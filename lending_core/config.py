"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LendingConfig(BaseSettings):
    """Lending core configuration"""
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Cartera Vencida rules
    cv_exit_min_payments: int = 2  # Payments needed in one week to leave CV
    
    # Payment chronology heuristics
    chronology_default_week_duration: int = 16  # Used for the expected weekly quota
    chronology_fallback_max_weeks: int = 12     # Used for the evaluation horizon
    chronology_amount_per_week: int = 100       # One week of horizon per this many pesos lent
    
    # Display
    week_format_locale: str = "es-MX"
    
    class Config:
        env_prefix = "LENDING_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LendingConfig()


def get_config() -> LendingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendingConfig:
    """Reload configuration from environment"""
    global config
    config = LendingConfig()
    return config
