"""
Staging of uploaded source audio.

An upload lives on disk only for the request that brought it in: it is streamed
to the staging directory, forwarded to the provider, then deleted on every exit
path.
"""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol, Union

import aiofiles

from ..infrastructure.monitoring.logging import get_logger
from ..utils.exceptions import StorageError, ValidationError

logger = get_logger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


class UploadSource(Protocol):
    """Anything shaped like a Starlette ``UploadFile``."""

    filename: Optional[str]
    content_type: Optional[str]

    async def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True)
class StagedUpload:
    """Handle to a staged upload."""

    path: Path
    filename: str
    content_type: Optional[str]
    size: int


class TemporaryUploadStore:
    """Streams uploads to a staging directory and removes them again."""

    def __init__(
        self,
        temp_dir: Union[str, Path],
        max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        chunk_size: int = 64 * 1024,
    ):
        self.temp_dir = Path(temp_dir)
        self.max_bytes = max_bytes
        self.chunk_size = chunk_size

    async def acquire(self, upload: UploadSource) -> StagedUpload:
        """Stream an upload to the staging directory.

        Raises:
            ValidationError: if the upload exceeds ``max_bytes``
            StorageError: if the staging file cannot be written
        """
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create staging directory: {e}") from e

        staged_path = self.temp_dir / f"upload_{os.urandom(16).hex()}.tmp"
        total_size = 0

        try:
            async with aiofiles.open(staged_path, "wb") as f:
                while True:
                    chunk = await upload.read(self.chunk_size)
                    if not chunk:
                        break
                    total_size += len(chunk)
                    if total_size > self.max_bytes:
                        raise ValidationError(
                            "audio",
                            f"Audio file exceeds maximum size of {self.max_bytes // (1024 * 1024)}MB",
                            details={"max_bytes": self.max_bytes},
                        )
                    await f.write(chunk)
        except ValidationError:
            self._remove(staged_path)
            raise
        except OSError as e:
            self._remove(staged_path)
            raise StorageError(f"Failed to stage upload: {e}") from e
        except BaseException:
            # Client disconnects surface as cancellation mid-stream
            self._remove(staged_path)
            raise

        handle = StagedUpload(
            path=staged_path,
            filename=upload.filename or staged_path.name,
            content_type=upload.content_type,
            size=total_size,
        )
        logger.debug("upload_staged", path=str(staged_path), filename=handle.filename, size=total_size)
        return handle

    def release(self, handle: StagedUpload) -> None:
        """Delete a staged upload. Releasing an already-removed file only logs."""
        self._remove(handle.path)

    def _remove(self, path: Path) -> None:
        try:
            path.unlink()
            logger.info("temporary_file_cleaned", path=str(path))
        except FileNotFoundError:
            logger.info("temporary_file_already_absent", path=str(path))
        except OSError as e:
            logger.error("temporary_file_cleanup_failed", path=str(path), error=str(e))

    @asynccontextmanager
    async def staged(self, upload: UploadSource) -> AsyncIterator[StagedUpload]:
        """Stage ``upload`` for the duration of the ``async with`` block."""
        handle = await self.acquire(upload)
        try:
            yield handle
        finally:
            self.release(handle)
