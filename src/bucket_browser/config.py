"""Settings for the browser, read from YAML or JSON with ${VAR} expansion."""

import json
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from bucket_browser.exceptions import ConfigError

ENV_REFERENCE = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")

# Upper bound on keys per listing page accepted by R2 and S3
MAX_PAGE_LIMIT = 1000


def _expand(text: str) -> str:
    def lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in os.environ:
            raise ConfigError(f"Environment variable {name} is not set")
        return os.environ[name]

    return ENV_REFERENCE.sub(lookup, text)


def substitute_env_vars(value: Any) -> Any:
    """Expand ${VAR} references in every string of a parsed document.

    Raises:
        ConfigError: A referenced variable is not set
    """
    if isinstance(value, str):
        return _expand(value)
    if isinstance(value, dict):
        return {key: substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    return value


def _read_document(path: Path) -> dict[str, Any]:
    text = path.read_text()
    if path.suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return json.loads(text) if text.strip() else {}


class StorageConfig(BaseModel):
    """Object store backend configuration."""

    backend: str = "local"  # memory | local | r2
    # Backend-specific settings
    path: str | None = None  # For local backend
    bucket: str | None = None  # For R2/S3
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str = "auto"

    def backend_options(self) -> dict[str, Any]:
        """Keyword arguments passed to the backend constructor."""
        return self.model_dump(exclude={"backend"}, exclude_none=True)


class ListingConfig(BaseModel):
    """Listing endpoint settings."""

    page_limit: int = MAX_PAGE_LIMIT
    delimiter: str = "/"

    @field_validator("page_limit")
    @classmethod
    def _check_page_limit(cls, value: int) -> int:
        if not 1 <= value <= MAX_PAGE_LIMIT:
            raise ValueError(f"page_limit must be between 1 and {MAX_PAGE_LIMIT}")
        return value


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: str = "INFO"
    format: str = "json"  # json | text


class ClientConfig(BaseModel):
    """Settings for the programmatic browser client."""

    base_url: str = "http://127.0.0.1:8080"
    render_delay: float = 0.3
    archive_default_name: str = "bucket"


class Config(BaseModel):
    """Top-level settings; every section has working defaults."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    listing: ListingConfig = Field(default_factory=ListingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        return cls.model_validate(substitute_env_vars(data))

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Read a .yaml/.yml file, or JSON for any other suffix."""
        return cls.from_dict(_read_document(Path(path)))
