"""
Tests for the artifact store and metadata resolution.
"""

import json
import os
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from audiostudio.core.models import ArtifactMetadata, OperationKind
from audiostudio.services import artifacts as artifacts_module
from audiostudio.services.artifacts import ArtifactStore, MetadataResolver, media_type_for
from audiostudio.utils.exceptions import ArtifactNotFoundError, StorageError


FIXED_MS = 1_700_000_000_000


@pytest.fixture
def frozen_clock(monkeypatch):
    """Every store sees the same millisecond."""
    monkeypatch.setattr(artifacts_module, "time", SimpleNamespace(time_ns=lambda: FIXED_MS * 1_000_000))


def _metadata(kind=OperationKind.TEXT_TO_AUDIO, **fields):
    return ArtifactMetadata(
        type=kind,
        prompt=fields.pop("prompt", "ambient pad"),
        duration=fields.pop("duration", 30),
        output_format=fields.pop("output_format", "mp3"),
        model="stable-audio-2.5",
        created=datetime(2024, 5, 1, tzinfo=timezone.utc),
        **fields,
    )


@pytest.mark.unit
class TestArtifactStore:
    """Test ArtifactStore persistence and listing."""

    def test_persist_writes_payload_and_sidecar(self, artifact_store):
        stored = artifact_store.persist(OperationKind.TEXT_TO_AUDIO, b"audio-bytes", "mp3", _metadata())

        assert stored.identifier.startswith("audio_")
        assert stored.filename == f"{stored.identifier}.mp3"
        assert stored.path.read_bytes() == b"audio-bytes"
        assert stored.media_type == "audio/mpeg"

        sidecar = json.loads((artifact_store.base_path / f"{stored.identifier}.txt").read_text())
        assert sidecar["type"] == "text-to-audio"
        assert sidecar["prompt"] == "ambient pad"
        assert sidecar["duration"] == 30
        assert "created" in sidecar

    def test_directory_created_on_first_write(self, temp_dir):
        store = ArtifactStore(temp_dir / "nested" / "uploads")
        assert not store.base_path.exists()

        store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "mp3", _metadata())

        assert store.base_path.is_dir()

    @pytest.mark.parametrize("kind,prefix", [
        (OperationKind.TEXT_TO_AUDIO, "audio_"),
        (OperationKind.AUDIO_TO_AUDIO, "a2a_"),
        (OperationKind.INPAINT, "inpaint_"),
    ])
    def test_identifier_prefix_per_kind(self, artifact_store, kind, prefix):
        stored = artifact_store.persist(kind, b"x", "wav", _metadata(kind))
        assert stored.identifier.startswith(prefix)

    def test_rapid_persists_get_distinct_identifiers(self, artifact_store):
        identifiers = {
            artifact_store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "mp3", _metadata()).identifier
            for _ in range(25)
        }
        assert len(identifiers) == 25

    def test_separate_stores_do_not_clobber(self, output_dir):
        first = ArtifactStore(output_dir)
        second = ArtifactStore(output_dir)

        a = first.persist(OperationKind.TEXT_TO_AUDIO, b"first", "mp3", _metadata())
        b = second.persist(OperationKind.TEXT_TO_AUDIO, b"second", "mp3", _metadata())

        assert a.identifier != b.identifier
        assert a.path.read_bytes() == b"first"
        assert b.path.read_bytes() == b"second"

    def test_unsupported_format_refused(self, artifact_store):
        with pytest.raises(ValueError):
            artifact_store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "ogg", _metadata())

    def test_unwritable_directory_raises_storage_error(self, temp_dir):
        blocker = temp_dir / "not-a-dir"
        blocker.write_text("file in the way")
        store = ArtifactStore(blocker / "uploads")

        with pytest.raises(StorageError):
            store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "mp3", _metadata())

    def test_listing_reflects_sidecar(self, artifact_store):
        stored = artifact_store.persist(
            OperationKind.AUDIO_TO_AUDIO,
            b"abc",
            "wav",
            _metadata(OperationKind.AUDIO_TO_AUDIO, strength=0.5, source_filename="clip.wav"),
        )

        [summary] = list(artifact_store.list_artifacts())

        assert summary.filename == stored.filename
        assert summary.identifier == stored.identifier
        assert summary.url == f"/api/audio/download/{stored.filename}"
        assert summary.type is OperationKind.AUDIO_TO_AUDIO
        assert summary.prompt == "ambient pad"
        assert summary.strength == 0.5
        assert summary.source_filename == "clip.wav"
        assert summary.size_bytes == 3

    def test_missing_sidecar_falls_back_to_prefix(self, artifact_store):
        stored = artifact_store.persist(OperationKind.INPAINT, b"x", "mp3", _metadata(OperationKind.INPAINT))
        (artifact_store.base_path / f"{stored.identifier}.txt").unlink()

        [summary] = list(artifact_store.list_artifacts())

        assert summary.type is OperationKind.INPAINT
        assert summary.prompt is None

    def test_corrupt_sidecar_falls_back_to_prefix(self, artifact_store):
        stored = artifact_store.persist(
            OperationKind.AUDIO_TO_AUDIO, b"x", "mp3", _metadata(OperationKind.AUDIO_TO_AUDIO)
        )
        (artifact_store.base_path / f"{stored.identifier}.txt").write_text("{not json")

        [summary] = list(artifact_store.list_artifacts())

        assert summary.type is OperationKind.AUDIO_TO_AUDIO
        assert summary.prompt is None

    def test_sidecar_without_type_uses_prefix(self, output_dir):
        output_dir.mkdir(parents=True)
        (output_dir / "a2a_1700000000000.mp3").write_bytes(b"x")
        (output_dir / "a2a_1700000000000.txt").write_text(json.dumps({"prompt": "older entry", "duration": 10}))

        [summary] = list(ArtifactStore(output_dir).list_artifacts())

        assert summary.type is OperationKind.AUDIO_TO_AUDIO
        assert summary.prompt == "older entry"

    def test_unknown_prefix_is_text_to_audio(self, output_dir):
        output_dir.mkdir(parents=True)
        (output_dir / "imported.wav").write_bytes(b"x")

        [summary] = list(ArtifactStore(output_dir).list_artifacts())

        assert summary.type is OperationKind.TEXT_TO_AUDIO

    def test_listing_newest_first(self, output_dir):
        output_dir.mkdir(parents=True)
        for name, mtime in [("audio_1.mp3", 1_000), ("audio_3.mp3", 3_000), ("audio_2.wav", 2_000)]:
            path = output_dir / name
            path.write_bytes(b"x")
            os.utime(path, (mtime, mtime))

        names = [s.filename for s in ArtifactStore(output_dir).list_artifacts()]

        assert names == ["audio_3.mp3", "audio_2.wav", "audio_1.mp3"]

    def test_listing_ignores_partials_and_other_files(self, output_dir):
        output_dir.mkdir(parents=True)
        (output_dir / "audio_1.mp3.part").write_bytes(b"half")
        (output_dir / "audio_2.txt").write_text("{}")
        (output_dir / "notes.md").write_text("hello")
        (output_dir / "folder.mp3").mkdir()

        assert list(ArtifactStore(output_dir).list_artifacts()) == []

    def test_listing_is_restartable(self, artifact_store):
        listing = artifact_store.list_artifacts()
        assert list(listing) == []

        artifact_store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "mp3", _metadata())

        assert len(list(listing)) == 1
        assert len(list(listing)) == 1

    def test_listing_of_missing_directory_is_empty(self, temp_dir):
        assert list(ArtifactStore(temp_dir / "absent").list_artifacts()) == []


@pytest.mark.unit
class TestIdentifierClaims:
    """Test that concurrent writers never share an identifier."""

    def test_stale_availability_check_does_not_reuse_identifier(self, output_dir, frozen_clock, monkeypatch):
        first = ArtifactStore(output_dir)
        second = ArtifactStore(output_dir)
        # second looked before first's files landed
        monkeypatch.setattr(second, "_is_taken", lambda identifier: False)

        a = first.persist(OperationKind.TEXT_TO_AUDIO, b"FIRST", "mp3", _metadata(prompt="first"))
        b = second.persist(OperationKind.TEXT_TO_AUDIO, b"SECOND", "mp3", _metadata(prompt="second"))

        assert a.identifier == f"audio_{FIXED_MS}"
        assert b.identifier != a.identifier
        assert a.path.read_bytes() == b"FIRST"
        assert b.path.read_bytes() == b"SECOND"
        prompts = {s.identifier: s.prompt for s in first.list_artifacts()}
        assert prompts == {a.identifier: "first", b.identifier: "second"}

    def test_other_extension_does_not_share_identifier(self, output_dir, frozen_clock, monkeypatch):
        first = ArtifactStore(output_dir)
        second = ArtifactStore(output_dir)
        monkeypatch.setattr(second, "_is_taken", lambda identifier: False)

        a = first.persist(OperationKind.TEXT_TO_AUDIO, b"mp3", "mp3", _metadata())
        b = second.persist(OperationKind.TEXT_TO_AUDIO, b"wav", "wav", _metadata(output_format="wav"))

        assert a.identifier != b.identifier

    def test_existing_payload_never_overwritten(self, output_dir, frozen_clock, monkeypatch):
        output_dir.mkdir(parents=True)
        orphan = output_dir / f"audio_{FIXED_MS}.mp3"
        orphan.write_bytes(b"ORPHAN")
        store = ArtifactStore(output_dir)
        monkeypatch.setattr(store, "_is_taken", lambda identifier: False)

        stored = store.persist(OperationKind.TEXT_TO_AUDIO, b"NEW", "mp3", _metadata())

        assert stored.identifier != f"audio_{FIXED_MS}"
        assert orphan.read_bytes() == b"ORPHAN"
        assert not (output_dir / f"audio_{FIXED_MS}.txt").exists()
        assert list(output_dir.glob("*.part")) == []

    def test_unfilled_reservation_reads_as_missing(self, output_dir):
        output_dir.mkdir(parents=True)
        (output_dir / "a2a_1.wav").write_bytes(b"x")
        (output_dir / "a2a_1.txt").write_bytes(b"")

        [summary] = list(ArtifactStore(output_dir).list_artifacts())

        assert summary.type is OperationKind.AUDIO_TO_AUDIO
        assert summary.prompt is None

    def test_no_partial_files_left_after_persist(self, artifact_store):
        artifact_store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "mp3", _metadata())

        assert list(artifact_store.base_path.glob("*.part")) == []


@pytest.mark.unit
class TestArtifactRetrieval:
    """Test ArtifactStore.retrieve."""

    def test_retrieve_returns_identical_bytes(self, artifact_store, sample_audio_bytes):
        stored = artifact_store.persist(OperationKind.TEXT_TO_AUDIO, sample_audio_bytes, "wav", _metadata())

        found = artifact_store.retrieve(stored.filename)

        assert found.read_bytes() == sample_audio_bytes
        assert found.media_type == "audio/wav"

    def test_retrieve_by_identifier(self, artifact_store):
        stored = artifact_store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "mp3", _metadata())

        found = artifact_store.retrieve(stored.identifier)

        assert found.filename == stored.filename

    @pytest.mark.parametrize("name", ["audio_0.mp3", "audio_0", "", "..", "../secret.mp3", "sub\\audio_1.mp3"])
    def test_retrieve_unknown_raises(self, artifact_store, name):
        with pytest.raises(ArtifactNotFoundError):
            artifact_store.retrieve(name)

    def test_retrieve_does_not_serve_sidecar(self, artifact_store):
        stored = artifact_store.persist(OperationKind.TEXT_TO_AUDIO, b"x", "mp3", _metadata())

        with pytest.raises(ArtifactNotFoundError):
            artifact_store.retrieve(f"{stored.identifier}.txt")

    @pytest.mark.parametrize("filename,media_type", [
        ("audio_1.wav", "audio/wav"),
        ("audio_1.WAV", "audio/wav"),
        ("audio_1.mp3", "audio/mpeg"),
        ("audio_1.bin", "audio/mpeg"),
    ])
    def test_media_type_for(self, filename, media_type):
        assert media_type_for(filename) == media_type


@pytest.mark.unit
class TestMetadataResolver:
    """Test MetadataResolver."""

    def test_non_object_sidecar_ignored(self, temp_dir):
        sidecar = temp_dir / "audio_1.txt"
        sidecar.write_text("[1, 2, 3]")

        assert MetadataResolver().from_sidecar(sidecar) is None

    def test_invalid_type_value_ignored(self, temp_dir):
        sidecar = temp_dir / "inpaint_1.txt"
        sidecar.write_text(json.dumps({"type": "karaoke", "prompt": "x"}))

        kind, metadata = MetadataResolver().resolve("inpaint_1", sidecar)

        assert kind is OperationKind.INPAINT
        assert metadata is None
