"""Shared test fixtures and utilities."""

from pathlib import Path

import pytest

from php_switch.config import Settings
from php_switch.provisioner import EnvironmentProvisioner
from tests.utils import FakeRuntime


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with isolated resource names and a dispatch path under tmp_path."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return Settings(
        network_name="net1",
        volume_name="vol1",
        dispatch_path=bin_dir / "php",
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def status_messages() -> list[str]:
    return []


@pytest.fixture
def provisioner(
    fake_runtime: FakeRuntime, test_settings: Settings, status_messages: list[str]
) -> EnvironmentProvisioner:
    return EnvironmentProvisioner(
        fake_runtime, test_settings, on_status=status_messages.append
    )
