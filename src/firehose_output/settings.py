from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from firehose_output.batching import FIREHOSE_PUT_BATCH_RECORD_LIMIT
from firehose_output.errors import ConfigurationError

_STREAM_NAME_PATTERN = re.compile(r"[\w\-]+", re.ASCII)


def validate_stream_name(stream_name: str | None) -> str:
    if not stream_name:
        raise ConfigurationError("Firehose: stream name is empty")
    if not _STREAM_NAME_PATTERN.fullmatch(stream_name):
        raise ConfigurationError(
            "Firehose: stream name contains invalid characters "
            "(allowed: letters, digits, underscore and hyphen)"
        )
    return stream_name


def load_credentials_file(path: Path) -> dict[str, str]:
    """Read access_key_id/secret_access_key/session_token from a YAML file.

    Keys may be written Ruby-symbol style (``:access_key_id:``).
    """
    if not path.exists():
        raise ConfigurationError(f"AWS credentials file does not exist: {path}")

    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ConfigurationError("AWS credentials file must contain a top-level mapping.")

    normalized = {str(key).lstrip(":"): value for key, value in raw.items()}
    credentials: dict[str, str] = {}
    for source_key, target_key in (
        ("access_key_id", "aws_access_key_id"),
        ("secret_access_key", "aws_secret_access_key"),
        ("session_token", "aws_session_token"),
    ):
        value = normalized.get(source_key)
        if value is not None:
            credentials[target_key] = str(value)

    if "aws_access_key_id" not in credentials or "aws_secret_access_key" not in credentials:
        raise ConfigurationError(
            "AWS credentials file must define access_key_id and secret_access_key"
        )
    return credentials


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False)

    firehose_stream: str = Field(alias="FIREHOSE_STREAM")
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")
    aws_access_key_id: str | None = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(default=None, alias="AWS_SECRET_ACCESS_KEY")
    aws_session_token: str | None = Field(default=None, alias="AWS_SESSION_TOKEN")
    aws_credentials_file: Path | None = Field(default=None, alias="AWS_CREDENTIALS_FILE")
    firehose_endpoint_url: str | None = Field(default=None, alias="FIREHOSE_ENDPOINT_URL")
    proxy_uri: str | None = Field(default=None, alias="PROXY_URI")

    codec: Literal["plain", "line", "json", "json_lines"] = Field(default="plain", alias="CODEC")
    codec_format: str | None = Field(default=None, alias="CODEC_FORMAT")
    codec_charset: str = Field(default="utf-8", alias="CODEC_CHARSET")

    read_batch_size: int = Field(default=125, alias="READ_BATCH_SIZE")

    @field_validator("firehose_stream")
    @classmethod
    def _validate_stream(cls, value: str) -> str:
        return validate_stream_name(value)

    @field_validator("read_batch_size")
    @classmethod
    def _validate_read_batch_size(cls, value: int) -> int:
        if value < 1 or value > FIREHOSE_PUT_BATCH_RECORD_LIMIT:
            raise ValueError(
                f"READ_BATCH_SIZE must be between 1 and {FIREHOSE_PUT_BATCH_RECORD_LIMIT}"
            )
        return value

    @model_validator(mode="after")
    def _validate_static_credentials(self) -> Settings:
        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            raise ValueError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be provided together"
            )
        return self

    @property
    def aws_credentials(self) -> dict[str, Any]:
        # Static keys win over the credentials file; neither means the boto3 default chain.
        if self.aws_access_key_id and self.aws_secret_access_key:
            credentials: dict[str, Any] = {
                "aws_access_key_id": self.aws_access_key_id,
                "aws_secret_access_key": self.aws_secret_access_key,
            }
            if self.aws_session_token:
                credentials["aws_session_token"] = self.aws_session_token
            return credentials

        if self.aws_credentials_file is not None:
            return load_credentials_file(self.aws_credentials_file)

        return {}
