"""
Service configuration.

Loaded once at startup from a JSON file (same keys as the legacy
conf.json) and validated with pydantic. The resulting Settings object is
frozen and handed to create_app(); nothing reads configuration from global
state after that.

Environment overrides (read after loading .env via python-dotenv):
  GITHUB_TOKEN          overrides GithubToken
  MAILGUN_TOKEN         overrides MailgunToken
  MAILGUN_SIGNING_KEY   overrides WebhookSigningKey
"""

import json
import os
import posixpath
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from mailpost.errors import ConfigError

DEFAULT_CONFIG_PATH = "conf.json"

# Environment variable -> config key
_ENV_OVERRIDES = {
    "GITHUB_TOKEN": "GithubToken",
    "MAILGUN_TOKEN": "MailgunToken",
    "MAILGUN_SIGNING_KEY": "WebhookSigningKey",
}


class Settings(BaseModel):
    """Validated, immutable service configuration."""

    model_config = {"populate_by_name": True, "extra": "ignore", "frozen": True}

    github_token: str = Field(alias="GithubToken", min_length=1)
    github_user: str = Field(alias="GithubUser", min_length=1)
    github_repo: str = Field(alias="GithubRepo", min_length=1)
    path: str = Field("", alias="Path")
    mailgun_token: str = Field(alias="MailgunToken", min_length=1)
    authors: dict[str, str] = Field(alias="Authors")

    branch: str = Field("main", alias="Branch", min_length=1)
    assets_path: Optional[str] = Field(None, alias="AssetsPath")
    commit_message: str = Field("Automatic Publish", alias="CommitMessage", min_length=1)
    webhook_signing_key: Optional[str] = Field(None, alias="WebhookSigningKey")
    github_api_url: str = Field("https://api.github.com", alias="GithubApiUrl")
    request_timeout: float = Field(10.0, alias="RequestTimeout", gt=0)
    read_retries: int = Field(1, alias="ReadRetries", ge=0)
    max_attachment_bytes: int = Field(10 * 1024 * 1024, alias="MaxAttachmentBytes", gt=0)

    @field_validator("authors")
    @classmethod
    def _authors_not_empty(cls, value: dict[str, str]) -> dict[str, str]:
        if not value:
            raise ValueError("at least one author must be configured")
        return value

    @property
    def posts_dir(self) -> str:
        """Posts directory inside the repository, without surrounding slashes."""
        return self.path.strip("/")

    @property
    def assets_dir(self) -> str:
        """Attachment directory; defaults to an ``assets`` folder next to the posts."""
        if self.assets_path is not None and self.assets_path.strip("/"):
            return self.assets_path.strip("/")
        return posixpath.join(self.posts_dir, "assets") if self.posts_dir else "assets"


def load_settings(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Read and validate the configuration file at ``path``.

    Raises:
        ConfigError: if the file cannot be read, is not a JSON object, or
                     fails validation.
    """
    load_dotenv()

    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError("Could not read config file", path=str(config_path), error=str(exc)) from exc

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ConfigError("Config file is not valid JSON", path=str(config_path), error=str(exc)) from exc

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object", path=str(config_path))

    for env_var, key in _ENV_OVERRIDES.items():
        value = os.getenv(env_var, "").strip()
        if value:
            data[key] = value

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError("Invalid configuration", path=str(config_path), error=str(exc)) from exc
