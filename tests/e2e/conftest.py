# tests/e2e/conftest.py
"""
Pytest fixtures for the drrepl end-to-end tests.

This module sets up the testing environment, including:
- Spinning up Docker containers for source and target S3 services (MinIO).
- Providing fixtures for S3 service endpoints and credentials.
- Creating and cleaning up isolated, versioned S3 buckets for each test.
"""

import os
import uuid
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

import pytest
import pytest_asyncio
import requests
from aiobotocore.session import AioSession, get_session
from requests.exceptions import ConnectionError
from types_aiobotocore_s3.client import S3Client
from types_aiobotocore_s3.paginator import ListObjectVersionsPaginator

from tests.conftest import S3_ACCESS_KEY, S3_REGION, S3_SECRET_KEY


# --- Docker Fixtures ---
@pytest.fixture(scope="session")
def docker_compose_file(pytestconfig: pytest.Config) -> str:
    """
    Locate the docker-compose.yml file for the test suite.

    Args:
        pytestconfig (pytest.Config): The pytest configuration object.

    Returns:
        str: The absolute path to the docker-compose.yml file.
    """
    return str(Path(pytestconfig.rootdir) / "tests" / "docker-compose.yml")


@pytest.fixture(scope="session")
def docker_compose_project_name() -> str:
    """
    Define a unique, static project name for the Docker stack.

    Returns:
        str: A unique name for the docker-compose project.
    """
    return "drrepl-tests"


def _is_s3_responsive(url: str) -> bool:
    """
    Check if the MinIO health endpoint is responsive.

    Args:
        url (str): The base URL of the MinIO API.

    Returns:
        bool: True if the service is responsive, False otherwise.
    """
    try:
        # The health check endpoint for MinIO is /minio/health/live
        response: requests.Response = requests.get(f"{url}/minio/health/live")
        return response.status_code == 200
    except ConnectionError:
        return False


def _s3_service(docker_ip: str, docker_services: Any, service: str) -> Dict[str, Any]:
    port: int = docker_services.port_for(service, 9000)
    api_url: str = f"http://{docker_ip}:{port}"
    docker_services.wait_until_responsive(
        timeout=30.0, pause=0.1, check=lambda: _is_s3_responsive(api_url)
    )
    return {
        "endpoint_url": api_url,
        "aws_access_key_id": S3_ACCESS_KEY,
        "aws_secret_access_key": S3_SECRET_KEY,
        "region_name": S3_REGION,
    }


@pytest.fixture(scope="session")
def source_s3_service(docker_ip: str, docker_services: Any) -> Dict[str, Any]:
    """
    Ensure the source S3 service is running and return its connection details.

    Args:
        docker_ip (str): The IP address of the Docker host, provided by pytest-docker.
        docker_services (Any): The pytest-docker services fixture.

    Returns:
        Dict[str, Any]: Connection details for the source S3 service.
    """
    return _s3_service(docker_ip, docker_services, "minio-source")


@pytest.fixture(scope="session")
def target_s3_service(docker_ip: str, docker_services: Any) -> Dict[str, Any]:
    """
    Ensure the target S3 service is running and return its connection details.

    Args:
        docker_ip (str): The IP address of the Docker host, provided by pytest-docker.
        docker_services (Any): The pytest-docker services fixture.

    Returns:
        Dict[str, Any]: Connection details for the target S3 service.
    """
    return _s3_service(docker_ip, docker_services, "minio-target")


async def _empty_and_delete_bucket(client: S3Client, bucket: str) -> None:
    """
    Remove every object version and delete marker, then the bucket itself.

    Args:
        client (S3Client): A client for the bucket's service.
        bucket (str): The bucket to remove.
    """
    paginator: ListObjectVersionsPaginator = client.get_paginator(
        "list_object_versions"
    )
    async for page in paginator.paginate(Bucket=bucket):
        for entry in page.get("Versions", []) + page.get("DeleteMarkers", []):
            await client.delete_object(
                Bucket=bucket, Key=entry["Key"], VersionId=entry["VersionId"]
            )
    await client.delete_bucket(Bucket=bucket)


# --- Application Fixtures ---
@pytest_asyncio.fixture(scope="function")
async def s3_buckets(
    source_s3_service: Dict[str, Any],
    target_s3_service: Dict[str, Any],
) -> AsyncGenerator[Dict[str, str], None]:
    """
    Create unique, versioned S3 buckets for a single test function.

    This fixture sets the environment variables read by the application's
    Config object and removes the buckets and all their versions afterwards.

    Args:
        source_s3_service (Dict[str, Any]): Connection details for the source S3.
        target_s3_service (Dict[str, Any]): Connection details for the target S3.

    Yields:
        Dict[str, str]: The names of the created source and target buckets.
    """
    session: AioSession = get_session()
    bucket_name_suffix: str = f"test-bucket-{uuid.uuid4()}"
    source_bucket: str = f"source-{bucket_name_suffix}"
    target_bucket: str = f"target-{bucket_name_suffix}"

    for side, service, bucket in (
        ("SOURCE", source_s3_service, source_bucket),
        ("TARGET", target_s3_service, target_bucket),
    ):
        os.environ[f"DRREPL_{side}_ENDPOINT_URL"] = service["endpoint_url"]
        os.environ[f"DRREPL_{side}_ACCESS_KEY_ID"] = S3_ACCESS_KEY
        os.environ[f"DRREPL_{side}_SECRET_ACCESS_KEY"] = S3_SECRET_KEY
        os.environ[f"DRREPL_{side}_BUCKET"] = bucket
        os.environ[f"DRREPL_{side}_REGION"] = S3_REGION

    async with (
        session.create_client("s3", **source_s3_service) as s3_source,
        session.create_client("s3", **target_s3_service) as s3_target,
    ):
        for client, bucket in ((s3_source, source_bucket), (s3_target, target_bucket)):
            await client.create_bucket(Bucket=bucket)
            await client.put_bucket_versioning(
                Bucket=bucket, VersioningConfiguration={"Status": "Enabled"}
            )

        yield {"source": source_bucket, "target": target_bucket}

        await _empty_and_delete_bucket(s3_source, source_bucket)
        await _empty_and_delete_bucket(s3_target, target_bucket)
