"""Configuration management for the workflow engine."""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .core.exceptions import ConfigurationError


ENV_PREFIX = "WORKFLOW_ENGINE_"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EngineConfig(BaseModel):
    """Engine configuration settings."""

    # Execution settings
    auto_execute: bool = Field(
        default=False,
        description="Automatically complete process nodes after a delay"
    )
    auto_execute_delay_seconds: float = Field(
        default=1.0,
        description="Delay before an auto-executed process node completes"
    )
    enable_validation: bool = Field(
        default=True,
        description="Evaluate validation criteria on gated edges"
    )
    enable_audit_trail: bool = Field(default=True, description="Record events in the audit trail")
    compliance_mode: bool = Field(
        default=True,
        description="Report compliance status for workflows that declare a compliance level"
    )
    max_execution_time_seconds: float = Field(
        default=30 * 60,
        description="Expected upper bound of a run, used for the estimated completion time"
    )
    pause_blocks_manual_actions: bool = Field(
        default=False,
        description="Reject manual navigation and completion while paused"
    )

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: Optional[str] = Field(default=None, description="Log message format")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_structured: bool = Field(default=False, description="Emit JSON log records")
    log_max_size: int = Field(default=10485760, description="Maximum log file size in bytes")  # 10MB
    log_backup_count: int = Field(default=5, description="Number of log backup files to keep")

    @field_validator('auto_execute_delay_seconds')
    @classmethod
    def validate_delay(cls, v):
        """Validate auto-execute delay."""
        if v < 0:
            raise ValueError("Auto-execute delay cannot be negative")
        return v

    @field_validator('max_execution_time_seconds')
    @classmethod
    def validate_max_execution_time(cls, v):
        """Validate maximum execution time."""
        if v <= 0:
            raise ValueError("Maximum execution time must be positive")
        return v

    @field_validator('log_max_size', 'log_backup_count')
    @classmethod
    def validate_log_limits(cls, v):
        """Validate log rotation limits."""
        if v < 0:
            raise ValueError("Log rotation limits cannot be negative")
        return v

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        """Create configuration from environment variables."""
        def get_env(key: str, default=None, type_func=str):
            """Get environment variable with type conversion."""
            value = os.getenv(f"{ENV_PREFIX}{key}")
            if value is None:
                return default
            if type_func == bool:
                return str(value).lower() in ('true', '1', 'yes', 'on')
            try:
                return type_func(value)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {ENV_PREFIX}{key}: {value!r}", config_key=key
                ) from e

        try:
            return cls(
                auto_execute=get_env("AUTO_EXECUTE", False, bool),
                auto_execute_delay_seconds=get_env("AUTO_EXECUTE_DELAY_SECONDS", 1.0, float),
                enable_validation=get_env("ENABLE_VALIDATION", True, bool),
                enable_audit_trail=get_env("ENABLE_AUDIT_TRAIL", True, bool),
                compliance_mode=get_env("COMPLIANCE_MODE", True, bool),
                max_execution_time_seconds=get_env("MAX_EXECUTION_TIME_SECONDS", 1800.0, float),
                pause_blocks_manual_actions=get_env("PAUSE_BLOCKS_MANUAL_ACTIONS", False, bool),
                log_level=LogLevel(get_env("LOG_LEVEL", "INFO").upper()),
                log_format=get_env("LOG_FORMAT", None),
                log_file=get_env("LOG_FILE", None),
                log_structured=get_env("LOG_STRUCTURED", False, bool),
                log_max_size=get_env("LOG_MAX_SIZE", 10485760, int),
                log_backup_count=get_env("LOG_BACKUP_COUNT", 5, int),
            )
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e


# Global configuration instance
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> EngineConfig:
    """Load configuration from a .env file and environment variables."""
    global _config

    from dotenv import load_dotenv

    if config_file:
        if not os.path.exists(config_file):
            raise ConfigurationError(f"Configuration file not found: {config_file}", config_key="config_file")
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        load_dotenv('.env')

    _config = EngineConfig.from_env()

    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


# Environment-specific configurations
def get_development_config() -> EngineConfig:
    """Get development configuration."""
    return EngineConfig(
        log_level=LogLevel.DEBUG,
        auto_execute=True,
    )


def get_production_config() -> EngineConfig:
    """Get production configuration."""
    return EngineConfig(
        log_level=LogLevel.INFO,
        log_structured=True,
    )


def get_testing_config() -> EngineConfig:
    """Get testing configuration."""
    return EngineConfig(
        log_level=LogLevel.WARNING,
        auto_execute_delay_seconds=0.01,
        max_execution_time_seconds=30,
    )
