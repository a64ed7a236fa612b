# src/drrepl/config.py
"""
Configuration for the drrepl replication tool.

This module centralizes all configuration, loading connection secrets from
environment variables and providing typed dataclasses for use throughout
the application.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from drrepl.exceptions import ConfigError

MANIFEST_FILE_NAME: str = "object_listing.txt"


def _get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable.

    Args:
        name (str): The name of the environment variable.
        default (str, optional): The default value if the variable is not set.

    Returns:
        str: The value of the environment variable.
    """
    value: Optional[str] = os.environ.get(name, default)
    if not value:
        raise ConfigError(f"Environment variable '{name}' must be set.")
    return value


@dataclass(frozen=True)
class S3Config:
    """
    Represents the configuration for an S3-compatible endpoint.

    Attributes:
        endpoint_url (str): The S3 endpoint URL.
        access_key_id (str): The access key ID.
        secret_access_key (str): The secret access key.
        bucket (str): The bucket name.
        region (str): The AWS region.
    """

    endpoint_url: str
    access_key_id: str
    secret_access_key: str
    bucket: str
    region: str

    @classmethod
    def from_env(cls, prefix: str) -> "S3Config":
        """
        Builds an endpoint configuration from `<prefix>_*` environment variables.

        Args:
            prefix (str): The variable prefix, e.g. `DRREPL_SOURCE`.

        Returns:
            S3Config: The populated configuration.
        """
        return cls(
            endpoint_url=_get_env_var(f"{prefix}_ENDPOINT_URL"),
            access_key_id=_get_env_var(f"{prefix}_ACCESS_KEY_ID"),
            secret_access_key=_get_env_var(f"{prefix}_SECRET_ACCESS_KEY"),
            bucket=_get_env_var(f"{prefix}_BUCKET"),
            region=_get_env_var(f"{prefix}_REGION", "us-east-1"),
        )

    def as_boto_dict(self) -> Dict[str, str]:
        """
        Returns the configuration as a dictionary suitable for aiobotocore clients.

        Returns:
            Dict[str, str]: A dictionary of client parameters.
        """
        return {
            "endpoint_url": self.endpoint_url,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "region_name": self.region,
        }


@dataclass(frozen=True)
class AppConfig:
    """
    Defines the application's operational parameters.

    Attributes:
        data_dir (Path): Working directory holding the manifest file.
        input_file (Path, optional): Explicit manifest path, overrides
            `data_dir / object_listing.txt`.
        skip (int): Number of well-formed manifest records to skip.
        dry_run (bool): Log intended actions without touching the target.
        concurrency (int): Number of replication workers.
        queue_size (int): Capacity of the task queue between reader and workers.
        insecure (bool): Disable TLS certificate verification.
        transport_max_attempts (int): Max attempts for a single HTTP request.
        connect_timeout_s (int): Connection timeout for S3 requests.
        read_timeout_s (int): Read timeout for S3 requests.
    """

    data_dir: Path = field(default_factory=lambda: Path("data"))
    input_file: Optional[Path] = None
    skip: int = 0
    dry_run: bool = False
    concurrency: int = 100
    queue_size: int = 256
    insecure: bool = False
    transport_max_attempts: int = 5
    connect_timeout_s: int = 30
    read_timeout_s: int = 60

    def __post_init__(self) -> None:
        if self.skip < 0:
            raise ConfigError(f"skip must be >= 0, got {self.skip}.")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}.")
        if self.queue_size < 1:
            raise ConfigError(f"queue_size must be >= 1, got {self.queue_size}.")
        if self.transport_max_attempts < 1:
            raise ConfigError(
                "transport_max_attempts must be >= 1, "
                f"got {self.transport_max_attempts}."
            )

    @property
    def manifest_path(self) -> Path:
        """
        The manifest file to read.

        Returns:
            Path: `input_file` if set, else `data_dir / object_listing.txt`.
        """
        if self.input_file is not None:
            return self.input_file
        return self.data_dir / MANIFEST_FILE_NAME


@dataclass(frozen=True)
class Config:
    """
    Top-level configuration container for the entire application.

    Attributes:
        source (S3Config): Configuration for the source S3-compatible service.
        target (S3Config): Configuration for the target S3-compatible service.
        app (AppConfig): General application settings.
    """

    source: S3Config = field(
        default_factory=lambda: S3Config.from_env("DRREPL_SOURCE")
    )
    target: S3Config = field(
        default_factory=lambda: S3Config.from_env("DRREPL_TARGET")
    )
    app: AppConfig = field(default_factory=AppConfig)
