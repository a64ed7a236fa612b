# tests/conftest.py
"""
Pytest configuration and fixtures shared by the drrepl test suites.

This module provides:
- An in-memory `FakeGateway` implementing the storage gateway protocol,
  recording every call so tests can assert on gateway traffic.
- Factories for writing manifest files and building application configs.
"""

import asyncio
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Set, Tuple

import pytest

from drrepl.config import AppConfig, Config, S3Config
from drrepl.exceptions import ReplicationError
from drrepl.gateway import ObjectPayload

# --- Constants ---
S3_ACCESS_KEY: str = "minio-key"
S3_SECRET_KEY: str = "minio-secret"
S3_REGION: str = "us-east-1"

VersionKey = Tuple[str, str, str]


class FakeGateway:
    """
    An in-memory storage gateway that records the calls made to it.

    Attributes:
        bucket (str): The bucket configured for this endpoint.
        objects (Dict[VersionKey, ObjectPayload]): Stored versions keyed by
            `(bucket, key, version_id)`.
        gets, puts, deletes (List[VersionKey]): Calls received, in order.
        fail_on (Set[VersionKey]): Versions for which every call raises.
    """

    def __init__(self, bucket: str, delay_s: float = 0.0) -> None:
        self.bucket: str = bucket
        self.objects: Dict[VersionKey, ObjectPayload] = {}
        self.gets: List[VersionKey] = []
        self.puts: List[VersionKey] = []
        self.deletes: List[VersionKey] = []
        self.fail_on: Set[VersionKey] = set()
        self.in_flight: int = 0
        self.max_in_flight: int = 0
        self._delay_s: float = delay_s

    @property
    def call_count(self) -> int:
        return len(self.gets) + len(self.puts) + len(self.deletes)

    def add_object(
        self, bucket: str, key: str, version_id: str, body: bytes = b"data"
    ) -> None:
        self.objects[(bucket, key, version_id)] = ObjectPayload(
            body=body, content_type="text/plain"
        )

    async def _enter(self, version: VersionKey) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield to the loop so workers genuinely interleave.
            await asyncio.sleep(self._delay_s)
        finally:
            self.in_flight -= 1
        if version in self.fail_on:
            raise ReplicationError(f"injected failure for {version}")

    async def get_object_version(
        self, bucket: str, key: str, version_id: str
    ) -> ObjectPayload:
        version: VersionKey = (bucket, key, version_id)
        self.gets.append(version)
        await self._enter(version)
        if version not in self.objects:
            raise ReplicationError(f"NoSuchVersion: {version}")
        return self.objects[version]

    async def put_object_version(
        self, bucket: str, key: str, version_id: str, payload: ObjectPayload
    ) -> None:
        version: VersionKey = (bucket, key, version_id)
        self.puts.append(version)
        await self._enter(version)
        self.objects[version] = payload

    async def delete_object_version(
        self, bucket: str, key: str, version_id: str
    ) -> None:
        version: VersionKey = (bucket, key, version_id)
        self.deletes.append(version)
        await self._enter(version)
        self.objects.pop(version, None)


@pytest.fixture(scope="function")
def source_gateway() -> FakeGateway:
    """
    Provide a fake source gateway holding `b1/k1@v1`.

    Returns:
        FakeGateway: The source gateway.
    """
    gateway: FakeGateway = FakeGateway("b1")
    gateway.add_object("b1", "k1", "v1", b"hello")
    return gateway


@pytest.fixture(scope="function")
def target_gateway() -> FakeGateway:
    """
    Provide an empty fake target gateway.

    Returns:
        FakeGateway: The target gateway.
    """
    return FakeGateway("dest")


@pytest.fixture(scope="function")
def manifest_writer(
    tmp_path: Path,
) -> Generator[Callable[[List[str]], Path], None, None]:
    """
    Provide a factory that writes manifest lines to `object_listing.txt`.

    Yields:
        A factory accepting manifest lines and returning the manifest path.
    """

    def _writer(lines: List[str]) -> Path:
        path: Path = tmp_path / "object_listing.txt"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    yield _writer


@pytest.fixture(scope="function")
def config_factory(tmp_path: Path) -> Callable[..., Config]:
    """
    Provide a factory for `Config` objects rooted in a temporary data dir.

    Returns:
        A factory accepting `AppConfig` overrides.
    """

    def _factory(
        source: Optional[S3Config] = None,
        target: Optional[S3Config] = None,
        **app_overrides: object,
    ) -> Config:
        app_kwargs: Dict[str, object] = {"data_dir": tmp_path, "concurrency": 4}
        app_kwargs.update(app_overrides)
        endpoint: S3Config = S3Config(
            endpoint_url="http://localhost:9000",
            access_key_id=S3_ACCESS_KEY,
            secret_access_key=S3_SECRET_KEY,
            bucket="unused",
            region=S3_REGION,
        )
        return Config(
            source=source or endpoint,
            target=target or endpoint,
            app=AppConfig(**app_kwargs),  # type: ignore[arg-type]
        )

    return _factory
