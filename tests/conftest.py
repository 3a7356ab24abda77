"""
Pytest configuration and shared fixtures.

Provides a fixed clock, an empty record state, the stores over it, a
FoundryService with an isolated checkpoint location, and two principals.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from foundry.core.captures.models import Capture, CaptureCreate
from foundry.core.captures.store import CaptureStore
from foundry.core.clock import Clock
from foundry.core.config import clear_cache
from foundry.core.config.models import FoundryConfig, StorageConfig
from foundry.core.fields.models import LabelListValue, NumberValue
from foundry.core.fields.schema import CaptureType
from foundry.core.services.foundry import FoundryService
from foundry.core.state import RecordState

FIXED_NOW = datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)

# ==============================================================================
# Environment
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep config, data and .env lookups inside the test's tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    for name in (
        "FOUNDRY_AUTH_SERVICE",
        "FOUNDRY_CONTROLLERS",
        "FOUNDRY_CAPACITY_POLICY",
        "FOUNDRY_DATA_DIR",
        "FOUNDRY_DEFAULT_LIMIT",
        "FOUNDRY_PRINCIPAL",
        "FOUNDRY_ACCESS_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Principals
# ==============================================================================


@pytest.fixture
def alice() -> str:
    return "alice"


@pytest.fixture
def bob() -> str:
    return "bob"


# ==============================================================================
# State and stores
# ==============================================================================


@pytest.fixture
def clock() -> Clock:
    """A clock pinned to FIXED_NOW; each reading advances by one microsecond."""
    return Clock(lambda: FIXED_NOW)


@pytest.fixture
def state(clock: Clock) -> RecordState:
    return RecordState(clock=clock, controllers=["admin"])


@pytest.fixture
def config(tmp_path: Path) -> FoundryConfig:
    return FoundryConfig(storage=StorageConfig(data_dir=tmp_path / "data"))


@pytest.fixture
def service(state: RecordState, config: FoundryConfig) -> FoundryService:
    return FoundryService(state, config)


@pytest.fixture
def captures(state: RecordState) -> CaptureStore:
    return CaptureStore(state)


@pytest.fixture
def make_capture(captures: CaptureStore):
    """Factory creating a capture with sensible defaults."""

    def _make(
        owner: str,
        title: str = "Capture",
        capture_type: CaptureType = CaptureType.TASK,
        estimate: int | None = None,
        labels: list[str] | None = None,
        **kwargs,
    ) -> Capture:
        fields = dict(kwargs.pop("fields", {}))
        if estimate is not None:
            fields["estimate"] = NumberValue(value=estimate)
        if labels is not None:
            fields["labels"] = LabelListValue(value=labels)
        return captures.create(
            owner,
            CaptureCreate(title=title, capture_type=capture_type, fields=fields, **kwargs),
        )

    return _make
