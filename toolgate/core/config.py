"""
Configuration Settings.

This module defines the runtime configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class SkillsConfig(BaseModel):
    """Skill store configuration."""

    skills_dir: str = Field(
        default="skills", alias="TOOLGATE_SKILLS_DIR", description="Directory holding one sub-directory per skill"
    )
    manifest_name: str = Field(
        default="SKILL.md", alias="TOOLGATE_SKILL_MANIFEST", description="Manifest file name inside a skill directory"
    )

    model_config = {"populate_by_name": True}


class ApprovalConfig(BaseModel):
    """Approval ledger configuration."""

    poll_interval_seconds: Optional[float] = Field(
        default=None,
        alias="TOOLGATE_APPROVAL_POLL_INTERVAL",
        description=(
            "When set, waiters re-read the approval store at this interval so decisions "
            "recorded by another process are observed"
        ),
    )

    model_config = {"populate_by_name": True}


class SafetyConfig(BaseModel):
    """Argument safety limits."""

    max_tool_args_bytes: int = Field(
        default=64_000,
        alias="TOOLGATE_MAX_TOOL_ARGS_BYTES",
        description="Maximum size of JSON-serialized tool arguments",
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Runtime settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="TOOLGATE_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log format (simple, detailed, json)",
        alias="TOOLGATE_LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the log file",
        alias="TOOLGATE_LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Write logs to <log_file_dir>/toolgate.log as well as the console",
        alias="TOOLGATE_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Database Configuration
    # =====================================================================
    database_url: Optional[str] = Field(
        default=None,
        description="Async database URL for the approval store; approvals are kept in memory when unset",
        alias="TOOLGATE_DATABASE_URL",
    )

    # =====================================================================
    # Skills / Approvals / Safety (flat env vars, grouped below)
    # =====================================================================
    skills_dir: str = Field(default="skills", alias="TOOLGATE_SKILLS_DIR")
    skill_manifest: str = Field(default="SKILL.md", alias="TOOLGATE_SKILL_MANIFEST")
    approval_poll_interval: Optional[float] = Field(default=None, alias="TOOLGATE_APPROVAL_POLL_INTERVAL")
    max_tool_args_bytes: int = Field(default=64_000, alias="TOOLGATE_MAX_TOOL_ARGS_BYTES")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def skills(self) -> SkillsConfig:
        """Get skill store configuration from environment variables."""
        return SkillsConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def approvals(self) -> ApprovalConfig:
        """Get approval ledger configuration from environment variables."""
        return ApprovalConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def safety(self) -> SafetyConfig:
        """Get argument safety configuration from environment variables."""
        return SafetyConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
