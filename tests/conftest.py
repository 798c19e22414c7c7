"""
Pytest configuration and shared fixtures for Snapback tests.

This module provides:
- Per-test export, output and config fixtures
- Capability doubles for the tag writer and compositor
- Tool availability fixtures
"""

import os
import shutil
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from common.processor_config import ENV_VARS, PipelineConfig  # noqa: E402
from tests.fixtures.doubles import FakeCompositor, RecordingApplier  # noqa: E402


# ============================================================================
# Session-scoped fixtures - created once per test session
# ============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


# ============================================================================
# Function-scoped fixtures - created fresh for each test
# ============================================================================


@pytest.fixture(autouse=True)
def clean_snapback_env(monkeypatch):
    """Keep SNAPBACK_* variables of the developer's shell out of the tests."""
    for env_name in ENV_VARS.values():
        monkeypatch.delenv(env_name, raising=False)
    yield
    # .env loading writes straight into os.environ
    for env_name in ENV_VARS.values():
        os.environ.pop(env_name, None)


@pytest.fixture
def temp_output_dir(tmp_path) -> Path:
    """Output directory for a single test (not created in advance)."""
    return tmp_path / "output"


@pytest.fixture
def temp_export_dir(tmp_path) -> Path:
    """Create a temporary export directory for a single test."""
    export_dir = tmp_path / "export"
    export_dir.mkdir()
    return export_dir


@pytest.fixture
def snapchat_memories_export(temp_export_dir) -> Path:
    """Create the single-memory export: abc.png + abc_overlay.png."""
    from tests.fixtures.generators import create_snapchat_memories_export
    return create_snapchat_memories_export(temp_export_dir)


@pytest.fixture
def make_config(temp_export_dir, temp_output_dir):
    """Factory for a PipelineConfig pointing at the temp export."""

    def _make(**overrides) -> PipelineConfig:
        values = {
            "metadata_file": temp_export_dir / "json" / "memories_history.json",
            "input_dir": temp_export_dir,
            "output_dir": temp_output_dir,
        }
        values.update(overrides)
        return PipelineConfig(**values)

    return _make


@pytest.fixture
def fake_applier() -> RecordingApplier:
    return RecordingApplier()


@pytest.fixture
def fake_compositor() -> FakeCompositor:
    return FakeCompositor()


# ============================================================================
# Tool availability fixtures
# ============================================================================


@pytest.fixture(scope="session")
def exiftool_available() -> bool:
    """Check if exiftool is available on the system."""
    return shutil.which("exiftool") is not None


@pytest.fixture(scope="session")
def ffmpeg_available() -> bool:
    """Check if ffmpeg and ffprobe are available on the system."""
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


# ============================================================================
# Test configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external tools (exiftool, ffmpeg)"
    )
