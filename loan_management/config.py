"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import List


class LoanManagementConfig(BaseSettings):
    """Loan management service configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///loan_management.db"  # memory:// for in-memory storage
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    
    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24
    password_min_length: int = 6
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Business rules configuration
    min_loan_amount: Decimal = Decimal("100")
    max_amount: Decimal = Decimal("99999999.99")  # precision 10, scale 2
    min_interest_rate: Decimal = Decimal("0.1")
    max_interest_rate: Decimal = Decimal("0.5")
    allowed_installment_counts: List[int] = [6, 9, 12, 24]
    payment_window_months: int = 3
    
    # Feature flags
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "LOANS_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LoanManagementConfig()


def get_config() -> LoanManagementConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LoanManagementConfig:
    """Reload configuration from environment"""
    global config
    config = LoanManagementConfig()
    return config
