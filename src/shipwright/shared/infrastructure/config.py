"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables (prefix ``SHIPWRIGHT_``)
and a ``.env`` file. Pipeline inputs (roots, flags, publish identity) live in
the pipeline config file instead; these settings cover the tooling around it.
"""

import sys
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_tool_install_command() -> List[str]:
    if sys.platform.startswith("win"):
        return ["winget", "install", "--id", "GitHub.cli", "-e", "--silent"]
    if sys.platform == "darwin":
        return ["brew", "install", "gh"]
    return ["sudo", "apt-get", "install", "-y", "gh"]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="SHIPWRIGHT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="shipwright", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    log_redaction_enabled: bool = Field(default=True, description="Mask credentials in log output")

    # External tools
    git_executable: str = Field(default="git", description="Version-control client")
    repo_tool_executable: str = Field(default="gh", description="Repository creation tool")
    repo_tool_install_command: List[str] = Field(
        default_factory=_default_tool_install_command,
        description="Command used to install the repository creation tool when it is missing",
    )
    compile_command: List[str] = Field(
        default=["msbuild", "{project}", "/m", "/p:Configuration={profile}", "/p:OutDir={output}/"],
        description="Compiler command template; {project}, {profile} and {output} are substituted",
    )
    sign_command: List[str] = Field(
        default=["signtool", "sign", "/fd", "SHA256", "/a", "{file}"],
        description="Signing command template; {file} is substituted",
    )

    # Publishing
    publish_host: str = Field(default="github.com", description="Host used to derive remote URLs")
    repo_visibility: str = Field(default="private", description="Visibility for newly created repositories")
    force_push_on_reject: bool = Field(default=True, description="Retry a rejected push once with --force")
    commit_message_prefix: str = Field(default="Automated build", description="Prefix for timestamped commits")
    commit_author_name: str | None = Field(default=None, description="Commit author name override")
    commit_author_email: str | None = Field(default=None, description="Commit author email override")

    @field_validator("repo_visibility")
    @classmethod
    def _check_visibility(cls, value: str) -> str:
        normalized = value.lower().strip()
        if normalized not in {"private", "public", "internal"}:
            raise ValueError(f"repo_visibility must be private, public or internal, got '{value}'")
        return normalized

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"


# Global settings instance
settings = Settings()
