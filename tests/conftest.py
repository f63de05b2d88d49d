"""Pytest configuration: environment isolation and shared fixtures."""

import shutil
from pathlib import Path

import pytest
from support import FakeClock

from beststories.pipeline import reset_aggregator
from beststories.utils.config import reset_settings


@pytest.fixture(scope="session", autouse=True)
def backup_env_file():
    """Backup .env file during test session to prevent pollution."""
    env_file = Path(".env")
    backup_file = Path(".env.test_backup")

    if env_file.exists():
        shutil.copy(env_file, backup_file)
        env_file.unlink()

    yield

    if backup_file.exists():
        shutil.move(backup_file, env_file)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Start every test from fresh settings and no shared aggregator."""
    reset_settings()
    reset_aggregator()
    yield
    reset_settings()
    reset_aggregator()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
