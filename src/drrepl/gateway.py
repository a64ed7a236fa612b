# src/drrepl/gateway.py
"""
Storage gateways for the source and target endpoints.

The replication core only talks to the `StorageGateway` protocol. `S3Gateway`
implements it on top of an aiobotocore S3 client; `open_gateway` builds and
validates such a client from an `S3Config`.
"""

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional, Protocol
from urllib.parse import ParseResult, urlparse

from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from drrepl.config import AppConfig, S3Config
from drrepl.exceptions import GatewayError, ReplicationError

if TYPE_CHECKING:
    from types_aiobotocore_s3.client import S3Client
    from types_aiobotocore_s3.type_defs import GetObjectOutputTypeDef

logger: logging.Logger = logging.getLogger(__name__)

SOURCE_VERSION_METADATA_KEY: str = "source-version-id"


@dataclass(frozen=True)
class ObjectPayload:
    """
    The data and descriptive metadata of one object version.

    Attributes:
        body (bytes): The object content.
        content_type (str, optional): The Content-Type of the source version.
        metadata (Dict[str, str]): User metadata of the source version.
    """

    body: bytes
    content_type: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def content_length(self) -> int:
        return len(self.body)


class StorageGateway(Protocol):
    """The object storage operations the replication core depends on."""

    bucket: str

    async def get_object_version(
        self, bucket: str, key: str, version_id: str
    ) -> ObjectPayload: ...

    async def put_object_version(
        self, bucket: str, key: str, version_id: str, payload: ObjectPayload
    ) -> None: ...

    async def delete_object_version(
        self, bucket: str, key: str, version_id: str
    ) -> None: ...


def _version_kwargs(version_id: str) -> Dict[str, str]:
    # An empty version addresses the current (null) version.
    return {"VersionId": version_id} if version_id else {}


class S3Gateway:
    """A `StorageGateway` backed by an aiobotocore S3 client."""

    def __init__(self, client: "S3Client", bucket: str) -> None:
        """
        Args:
            client (S3Client): An initialized aiobotocore S3 client.
            bucket (str): The bucket configured for this endpoint.
        """
        self._client: "S3Client" = client
        self.bucket: str = bucket

    async def check_bucket(self) -> None:
        """
        Verifies that the configured bucket is reachable.

        Raises:
            GatewayError: If the bucket does not exist or cannot be accessed.
        """
        try:
            await self._client.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise GatewayError(f"Unable to access bucket '{self.bucket}': {e}") from e

    async def get_object_version(
        self, bucket: str, key: str, version_id: str
    ) -> ObjectPayload:
        response: "GetObjectOutputTypeDef" = await self._client.get_object(
            Bucket=bucket, Key=key, **_version_kwargs(version_id)
        )
        # NOTE: S3 providers that require Content-Length reject chunked
        # uploads, so the whole version is read before the PUT.
        async with response["Body"] as stream:
            body: bytes = await stream.read()
        expected: Optional[int] = response.get("ContentLength")
        if expected is not None and expected != len(body):
            raise ReplicationError(
                f"Short read for '{bucket}/{key}': got {len(body)} of "
                f"{expected} bytes"
            )
        return ObjectPayload(
            body=body,
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata", {})),
        )

    async def put_object_version(
        self, bucket: str, key: str, version_id: str, payload: ObjectPayload
    ) -> None:
        metadata: Dict[str, str] = dict(payload.metadata)
        if version_id:
            metadata[SOURCE_VERSION_METADATA_KEY] = version_id
        params: Dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": payload.body,
            "ContentLength": payload.content_length,
            "Metadata": metadata,
        }
        if payload.content_type:
            params["ContentType"] = payload.content_type
        await self._client.put_object(**params)

    async def delete_object_version(
        self, bucket: str, key: str, version_id: str
    ) -> None:
        await self._client.delete_object(
            Bucket=bucket, Key=key, **_version_kwargs(version_id)
        )


def _validate_endpoint(s3_config: S3Config) -> None:
    """
    Rejects endpoint URLs that cannot address an S3 service.

    Args:
        s3_config (S3Config): The endpoint configuration.

    Raises:
        GatewayError: If the URL lacks an http(s) scheme or a host.
    """
    try:
        parsed: ParseResult = urlparse(s3_config.endpoint_url)
    except ValueError as e:
        raise GatewayError(
            f"Unable to parse endpoint '{s3_config.endpoint_url}': {e}"
        ) from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise GatewayError(
            f"Endpoint '{s3_config.endpoint_url}' must be an http(s) URL with a host."
        )
    if not s3_config.access_key_id or not s3_config.secret_access_key:
        raise GatewayError(
            f"Access key or secret key missing for '{s3_config.endpoint_url}'."
        )
    if not s3_config.bucket:
        raise GatewayError(f"Bucket missing for '{s3_config.endpoint_url}'.")


def build_boto_config(app_config: AppConfig) -> BotoConfig:
    """
    Builds the botocore client configuration shared by both endpoints.

    Args:
        app_config (AppConfig): The application configuration.

    Returns:
        BotoConfig: The client configuration.
    """
    # Explicitly set signature_version and disable payload signing. This is
    # the robust configuration for non-AWS S3 providers that require
    # Content-Length and support SigV4.
    return BotoConfig(
        signature_version="s3v4",
        max_pool_connections=app_config.concurrency + 50,
        connect_timeout=app_config.connect_timeout_s,
        read_timeout=app_config.read_timeout_s,
        tcp_keepalive=True,
        retries={
            "total_max_attempts": app_config.transport_max_attempts,
            "mode": "standard",
        },
        s3={"payload_signing_enabled": False, "addressing_style": "path"},
    )


@asynccontextmanager
async def open_gateway(
    session: AioSession,
    s3_config: S3Config,
    app_config: AppConfig,
) -> AsyncIterator[S3Gateway]:
    """
    Creates an `S3Gateway` for one endpoint and checks its bucket.

    Args:
        session (AioSession): The aiobotocore session.
        s3_config (S3Config): The endpoint configuration.
        app_config (AppConfig): The application configuration.

    Yields:
        S3Gateway: A ready-to-use gateway.

    Raises:
        GatewayError: If the client cannot be built or the bucket is unreachable.
    """
    _validate_endpoint(s3_config)
    async with AsyncExitStack() as stack:
        try:
            client: "S3Client" = await stack.enter_async_context(
                session.create_client(
                    "s3",
                    **s3_config.as_boto_dict(),
                    config=build_boto_config(app_config),
                    verify=not app_config.insecure,
                )
            )
        except (BotoCoreError, ValueError) as e:
            raise GatewayError(
                f"Could not initialize client for '{s3_config.endpoint_url}': {e}"
            ) from e

        gateway: S3Gateway = S3Gateway(client, s3_config.bucket)
        await gateway.check_bucket()
        logger.debug(
            f"Connected to 's3://{s3_config.bucket}' at {s3_config.endpoint_url}"
        )
        yield gateway
