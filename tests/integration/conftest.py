"""
Shared pytest fixtures for integration tests.

These fixtures talk to a real Docker daemon; every resource they hand out has
a unique name and is removed after the test.
"""

import uuid
from collections.abc import Generator
from pathlib import Path

import pytest
from docker import DockerClient
from docker.errors import DockerException, NotFound

from php_switch.config import Settings
from php_switch.docker.manager import DockerManager


@pytest.fixture(scope="module")
def docker_client() -> DockerClient:
    """
    Provides a Docker client for integration tests.

    Skips all tests that require this fixture if the Docker daemon is not running.
    """
    try:
        return DockerManager.get_client()
    except DockerException:
        pytest.skip("Docker daemon is not running. Skipping integration tests.")


@pytest.fixture(scope="module")
def docker_manager(docker_client: DockerClient) -> DockerManager:
    return DockerManager(client=docker_client)


@pytest.fixture
def isolated_settings(
    docker_client: DockerClient, tmp_path: Path
) -> Generator[Settings, None, None]:
    """Settings whose network, volume, container and tag are unique to the test."""
    suffix = uuid.uuid4().hex[:8]
    config = Settings(
        network_name=f"php-switch-test-net-{suffix}",
        volume_name=f"php-switch-test-vol-{suffix}",
        db_container_name=f"php-switch-test-db-{suffix}",
        custom_image_tag=f"php-switch-test-image:{suffix}",
        dispatch_path=tmp_path / "php",
        _env_file=None,  # type: ignore[call-arg]
    )
    yield config

    # Teardown: remove whatever the test created
    print(f"\nCleaning up resources for suffix {suffix}")
    for remove in (
        lambda: docker_client.containers.get(config.db_container_name).stop(),
        lambda: docker_client.networks.get(config.network_name).remove(),
        lambda: docker_client.volumes.get(config.volume_name).remove(force=True),
        lambda: docker_client.images.remove(config.custom_image_tag, force=True),
    ):
        try:
            remove()
        except NotFound:
            pass
