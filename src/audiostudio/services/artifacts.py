"""
Filesystem storage for generated audio and its metadata sidecars.

Layout: one flat directory holding ``{identifier}.{mp3|wav}`` payloads next to
``{identifier}.txt`` JSON sidecars. The identifier is ``{prefix}_{milliseconds}``
where the prefix encodes the operation kind.
"""

import json
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from ..core.models import ArtifactMetadata, ArtifactSummary, OperationKind
from ..infrastructure.monitoring.logging import get_logger
from ..utils.exceptions import ArtifactNotFoundError, StorageError

logger = get_logger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav")
SIDECAR_SUFFIX = ".txt"
PARTIAL_SUFFIX = ".part"
MEDIA_TYPES = {".wav": "audio/wav", ".mp3": "audio/mpeg"}


def media_type_for(filename: str) -> str:
    """Content type served for a stored file; anything but .wav is served as MPEG."""
    return MEDIA_TYPES.get(Path(filename).suffix.lower(), "audio/mpeg")


@dataclass(frozen=True)
class StoredArtifact:
    """A persisted artifact located on disk."""

    identifier: str
    filename: str
    path: Path
    media_type: str

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


class MetadataResolver:
    """Two-tier metadata resolution for a stored artifact.

    The sidecar is authoritative. When it is missing or unreadable the kind is
    inferred from the identifier prefix and everything else is left unknown.
    """

    def from_sidecar(self, sidecar_path: Path) -> Optional[ArtifactMetadata]:
        try:
            if sidecar_path.stat().st_size == 0:
                # Reserved by a writer that has not filled it in yet
                return None
        except FileNotFoundError:
            return None
        try:
            with open(sidecar_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("sidecar is not a JSON object")
            return ArtifactMetadata.model_validate(data)
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning("sidecar_unreadable", path=str(sidecar_path), error=str(e))
            return None

    def infer_kind(self, identifier: str) -> OperationKind:
        return OperationKind.from_prefix(identifier)

    def resolve(self, identifier: str, sidecar_path: Path) -> Tuple[OperationKind, Optional[ArtifactMetadata]]:
        metadata = self.from_sidecar(sidecar_path)
        if metadata is not None:
            kind = metadata.type if "type" in metadata.model_fields_set else self.infer_kind(identifier)
            return kind, metadata
        return self.infer_kind(identifier), None


class ArtifactListing:
    """Restartable view over the artifacts in a store.

    Nothing is read until the listing is iterated; every iteration rescans the
    directory, newest first.
    """

    def __init__(self, store: "ArtifactStore"):
        self._store = store

    def __iter__(self) -> Iterator[ArtifactSummary]:
        return iter(self._store.scan())


class ArtifactStore:
    """Persists audio payloads with metadata sidecars and lists them back."""

    def __init__(
        self,
        base_path: Union[str, Path],
        url_prefix: str = "/api/audio/download",
        resolver: Optional[MetadataResolver] = None,
    ):
        """Initialize store with base path.

        Args:
            base_path: Directory for artifacts; created on first write
            url_prefix: Route prefix used to build retrieval URLs
            resolver: Metadata resolution strategy
        """
        self.base_path = Path(base_path)
        self.url_prefix = url_prefix.rstrip("/")
        self.resolver = resolver or MetadataResolver()
        self._lock = threading.Lock()
        self._last_timestamp = 0

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def _next_timestamp(self) -> int:
        with self._lock:
            timestamp = max(time.time_ns() // 1_000_000, self._last_timestamp + 1)
            self._last_timestamp = timestamp
            return timestamp

    def _is_taken(self, identifier: str) -> bool:
        names = [f"{identifier}{ext}" for ext in AUDIO_EXTENSIONS] + [f"{identifier}{SIDECAR_SUFFIX}"]
        return any((self.base_path / name).exists() for name in names)

    def _claim(self, identifier: str) -> bool:
        """Reserve ``identifier`` by creating its sidecar exclusively.

        The sidecar name is shared by both payload extensions, so at most one
        writer in any process can hold an identifier.
        """
        try:
            with open(self.base_path / f"{identifier}{SIDECAR_SUFFIX}", "xb"):
                pass
        except FileExistsError:
            return False
        return True

    def _write_payload(self, kind: OperationKind, data: bytes, output_format: str) -> Tuple[str, Path]:
        """Write the payload under a fresh identifier and return (identifier, path)."""
        while True:
            identifier = f"{kind.prefix}_{self._next_timestamp()}"
            if self._is_taken(identifier) or not self._claim(identifier):
                continue

            sidecar_path = self.base_path / f"{identifier}{SIDECAR_SUFFIX}"
            final_path = self.base_path / f"{identifier}.{output_format}"
            partial_path = final_path.with_name(final_path.name + PARTIAL_SUFFIX)
            try:
                with open(partial_path, "wb") as f:
                    f.write(data)
                # link() never replaces an existing payload, unlike rename()
                os.link(partial_path, final_path)
            except FileExistsError:
                logger.warning("artifact_identifier_collision", identifier=identifier)
                partial_path.unlink(missing_ok=True)
                sidecar_path.unlink(missing_ok=True)
                continue
            except OSError:
                partial_path.unlink(missing_ok=True)
                sidecar_path.unlink(missing_ok=True)
                raise
            partial_path.unlink(missing_ok=True)
            return identifier, final_path

    def persist(
        self, kind: OperationKind, data: bytes, output_format: str, metadata: ArtifactMetadata
    ) -> StoredArtifact:
        """
        Persist an artifact: reserve the identifier, publish the payload, then
        fill in its sidecar.

        A crash before the sidecar is written leaves an empty sidecar, which the
        listing treats as missing and falls back to inferred metadata.

        Raises:
            StorageError: if either write fails
        """
        if output_format not in ("mp3", "wav"):
            raise ValueError(f"Unsupported output format: {output_format}")

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            identifier, payload_path = self._write_payload(kind, data, output_format)
        except OSError as e:
            logger.error("artifact_write_failed", kind=kind.value, error=str(e))
            raise StorageError(f"Failed to save audio: {e}") from e

        sidecar_path = self.base_path / f"{identifier}{SIDECAR_SUFFIX}"
        try:
            sidecar = metadata.model_dump(mode="json", exclude_none=True)
            sidecar["type"] = kind.value
            partial_sidecar = sidecar_path.with_name(sidecar_path.name + PARTIAL_SUFFIX)
            with open(partial_sidecar, "w", encoding="utf-8") as f:
                json.dump(sidecar, f, indent=2)
            # Replaces this writer's own empty reservation
            os.replace(partial_sidecar, sidecar_path)
        except OSError as e:
            logger.error("sidecar_write_failed", identifier=identifier, error=str(e))
            raise StorageError(f"Failed to save metadata: {e}") from e

        logger.info("artifact_persisted", identifier=identifier, size=len(data), path=str(payload_path))
        return StoredArtifact(
            identifier=identifier,
            filename=payload_path.name,
            path=payload_path,
            media_type=media_type_for(payload_path.name),
        )

    def summarize(self, path: Path) -> ArtifactSummary:
        """Build the listing entry for one payload file."""
        identifier = path.stem
        stat = path.stat()
        kind, metadata = self.resolver.resolve(identifier, path.with_suffix(SIDECAR_SUFFIX))

        summary = {
            "filename": path.name,
            "identifier": identifier,
            "url": self.url_for(path.name),
            "created": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            "size_bytes": stat.st_size,
            "type": kind,
        }
        if metadata is not None:
            summary.update(
                metadata.model_dump(exclude_none=True, exclude={"type", "created"})
            )
        return ArtifactSummary(**summary)

    def scan(self) -> List[ArtifactSummary]:
        """Scan the directory once and return summaries, newest first."""
        if not self.base_path.exists():
            return []

        summaries = []
        for entry in self.base_path.iterdir():
            if entry.suffix.lower() not in AUDIO_EXTENSIONS or not entry.is_file():
                continue
            try:
                summaries.append(self.summarize(entry))
            except FileNotFoundError:
                # Removed between iterdir() and stat()
                continue
        # sort() is stable, so equal timestamps keep directory order
        summaries.sort(key=lambda s: s.created, reverse=True)
        return summaries

    def list_artifacts(self) -> ArtifactListing:
        return ArtifactListing(self)

    def retrieve(self, name: str) -> StoredArtifact:
        """
        Locate a stored artifact by filename or bare identifier.

        Raises:
            ArtifactNotFoundError: if no such artifact exists
        """
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ArtifactNotFoundError("File not found", details={"filename": name})

        suffix = Path(name).suffix.lower()
        if suffix in AUDIO_EXTENSIONS:
            candidates = [self.base_path / name]
        else:
            candidates = [self.base_path / f"{name}{ext}" for ext in AUDIO_EXTENSIONS]

        for path in candidates:
            if path.is_file():
                return StoredArtifact(
                    identifier=path.stem,
                    filename=path.name,
                    path=path,
                    media_type=media_type_for(path.name),
                )
        raise ArtifactNotFoundError("File not found", details={"filename": name})
