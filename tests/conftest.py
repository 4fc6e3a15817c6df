"""
PyTest configuration and shared fixtures.
"""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import pytest

from audiostudio.infrastructure.config.settings import (
    AppConfig,
    APIConfig,
    ProviderConfig,
    StorageConfig,
)
from audiostudio.services.artifacts import ArtifactStore
from audiostudio.services.uploads import TemporaryUploadStore


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network or server")
    config.addinivalue_line("markers", "integration: tests exercising the HTTP surface")


class FakeUpload:
    """Minimal stand-in for a Starlette UploadFile."""

    def __init__(self, data: bytes, filename: str = "clip.wav", content_type: Optional[str] = "audio/wav"):
        self.filename = filename
        self.content_type = content_type
        self._buffer = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def output_dir(temp_dir):
    return temp_dir / "uploads"


@pytest.fixture
def staging_dir(temp_dir):
    return temp_dir / "temp-uploads"


@pytest.fixture
def app_config(output_dir, staging_dir):
    """Configuration pointing at throwaway directories."""
    return AppConfig(
        environment="testing",
        api=APIConfig(port=5099),
        provider=ProviderConfig(api_key="test-key", base_url="https://provider.test/v2beta/audio"),
        storage=StorageConfig(output_dir=str(output_dir), temp_dir=str(staging_dir), max_upload_mb=1),
    )


@pytest.fixture
def artifact_store(output_dir):
    return ArtifactStore(output_dir)


@pytest.fixture
def upload_store(staging_dir):
    return TemporaryUploadStore(staging_dir, max_bytes=1024 * 1024, chunk_size=1024)


@pytest.fixture
def make_upload():
    """Factory for fake uploads."""
    return FakeUpload


@pytest.fixture
def sample_audio_bytes():
    """A few bytes that look enough like a WAV header for our purposes."""
    return b"RIFF\x24\x00\x00\x00WAVEfmt " + bytes(range(256)) * 4
