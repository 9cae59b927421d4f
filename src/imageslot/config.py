"""
imageslot Configuration
Pydantic Settings for all configurable options.
"""

import secrets
from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import AuthError, ConfigError


def parse_resource_path(resource_path: str) -> Tuple[str, str]:
    """
    Split an ``owner/repo`` resource path into its two segments.

    Raises:
        ConfigError: If the path is empty or does not have exactly two segments
    """
    parts = [p for p in (resource_path or "").strip().strip("/").split("/")]
    if len(parts) != 2 or not all(parts):
        raise ConfigError(
            f"Repository path must look like 'owner/repo', got: {resource_path!r}"
        )
    return parts[0], parts[1]


class Credential(BaseModel):
    """Token and resource path used for one upload or read."""

    token: str = ""
    resource_path: str = ""

    def require(self) -> "Credential":
        """
        Check that both fields are usable.

        Raises:
            AuthError: If the token is missing
            ConfigError: If the resource path is missing or malformed
        """
        if not self.token:
            raise AuthError("GitHub token not configured")
        if not self.resource_path:
            raise ConfigError("Repository path not configured")
        parse_resource_path(self.resource_path)
        return self


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- API Security ---
    api_token: str = Field(default_factory=lambda: secrets.token_urlsafe(32))

    # --- Remote Store ---
    github_token: str = ""
    repo_path: str = ""  # owner/repo
    github_api_url: str = "https://api.github.com"
    raw_content_url: str = "https://raw.githubusercontent.com"
    branch: str = "main"
    resource_filename: str = "image1.jpg"
    public_url_template: str = "https://{owner}.github.io/{repo}/{filename}"
    request_timeout: float = 30.0  # seconds

    # --- Image Processing ---
    max_upload_bytes: int = 20 * 1024 * 1024
    max_dimension: int = 2048

    # --- Compression Defaults ---
    compression_mode: Literal["none", "preset", "manual"] = "preset"
    compression_preset: str = "medium"  # high, medium, low
    compression_quality: int = Field(default=80, ge=10, le=100)  # percent, manual mode

    # --- Reconciliation ---
    upload_confirm_delay: float = 10.0  # read path lags the write path
    reuse_confirm_delay: float = 3.0

    # --- Storage ---
    storage_path: Path = Field(default=Path.home() / ".imageslot")
    recent_limit: int = 10

    # --- Server ---
    api_port: int = 8000
    api_host: str = "0.0.0.0"

    def credential(self, token: Optional[str] = None, repo_path: Optional[str] = None) -> Credential:
        """Return the credential for the configured resource slot."""
        return Credential(
            token=token if token is not None else self.github_token,
            resource_path=repo_path if repo_path is not None else self.repo_path,
        )

    def ensure_directories(self) -> None:
        """Create storage directories if they don't exist."""
        self.storage_path.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
