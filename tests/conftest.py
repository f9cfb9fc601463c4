"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from pensieve.provider import InMemoryDataProvider
from tests.fixtures.catalog_fixtures import (
    SNAPSHOT_YAML,
    make_chain_provider,
    make_romance_provider,
)


@pytest.fixture(autouse=True)
def clear_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep engine environment overrides from leaking into tests."""
    monkeypatch.delenv("PENSIEVE_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("PENSIEVE_MAX_EXPRESSION_DEPTH", raising=False)
    monkeypatch.delenv("PENSIEVE_LOG_DIR", raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def romance_provider() -> InMemoryDataProvider:
    """Small romance catalog, see make_romance_provider."""
    return make_romance_provider()


@pytest.fixture
def chain_provider() -> InMemoryDataProvider:
    """Prerequisite chain A -> B -> C plus isolated D."""
    return make_chain_provider()


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    """Write the sample YAML snapshot and return its path."""
    path = tmp_path / "snapshot.yaml"
    path.write_text(SNAPSHOT_YAML)
    return path
