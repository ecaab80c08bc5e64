"""Unit tests for the inventory scanner."""

import os
from datetime import timedelta

import pytest

from clip_retention.retention.errors import (
    FileTypeNotEligibleError,
    MalformedFilenameError,
    ScanRootUnavailableError,
    StatFailedError,
)
from clip_retention.retention.extensions import AudioExtension
from clip_retention.retention.records import normalize_clip_path
from clip_retention.retention import scanner
from clip_retention.retention.scanner import scan_inventory


class TestScanInventory:
    """Test scan_inventory function."""

    def test_empty_root(self, clip_root):
        result = scan_inventory(clip_root)

        assert result.records == ()
        assert result.errors == ()
        assert result.root == normalize_clip_path(clip_root)

    def test_collects_clips_with_sizes(self, clip_root, make_clip):
        owl = make_clip("owl", timedelta(days=3), size=10)
        duck = make_clip("duck", timedelta(days=1), size=25, extension=".mp3")

        result = scan_inventory(clip_root)

        by_path = {record.path: record for record in result.records}
        assert set(by_path) == {normalize_clip_path(owl), normalize_clip_path(duck)}
        assert by_path[normalize_clip_path(owl)].size_bytes == 10
        assert by_path[normalize_clip_path(duck)].species == "duck"
        assert result.total_bytes == 35
        assert result.species_counts() == {"owl": 1, "duck": 1}

    def test_walks_subdirectories(self, clip_root, make_clip):
        nested = make_clip("owl", directory=clip_root / "2024" / "06")

        result = scan_inventory(clip_root)

        assert [record.path for record in result.records] == [normalize_clip_path(nested)]

    def test_ineligible_and_malformed_files_are_reported_not_returned(self, clip_root, make_clip):
        make_clip("owl")
        (clip_root / "system_80p_20210102T150405Z.exe").write_bytes(b"MZ")
        (clip_root / "random.wav").write_bytes(b"RIFF")
        (clip_root / "notes.txt").write_text("hello")

        result = scan_inventory(clip_root)

        assert len(result.records) == 1
        assert result.ineligible_count == 2
        assert result.malformed_count == 1
        errors = dict(result.errors)
        assert isinstance(errors[str(clip_root / "system_80p_20210102T150405Z.exe")], FileTypeNotEligibleError)
        assert isinstance(errors[str(clip_root / "random.wav")], MalformedFilenameError)

    def test_narrowed_allow_list(self, clip_root, make_clip):
        make_clip("owl", extension=".wav")
        make_clip("duck", extension=".mp3")

        result = scan_inventory(clip_root, (AudioExtension.WAV,))

        assert [record.species for record in result.records] == ["owl"]
        assert result.ineligible_count == 1

    def test_records_sorted_by_path(self, clip_root, make_clip):
        for species in ("wren", "auk", "owl"):
            make_clip(species)

        result = scan_inventory(clip_root)

        paths = [record.path for record in result.records]
        assert paths == sorted(paths)

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinked_directories_are_not_followed(self, tmp_path, clip_root, make_clip):
        outside = tmp_path / "outside"
        make_clip("owl", directory=outside)
        os.symlink(outside, clip_root / "linked", target_is_directory=True)

        result = scan_inventory(clip_root)

        assert result.records == ()

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(ScanRootUnavailableError):
            scan_inventory(tmp_path / "does-not-exist")

    def test_file_as_root_raises(self, tmp_path):
        target = tmp_path / "file.wav"
        target.write_bytes(b"")

        with pytest.raises(ScanRootUnavailableError):
            scan_inventory(target)

    def test_scan_does_not_modify_directory(self, clip_root, make_clip):
        make_clip("owl")
        (clip_root / "junk.exe").write_bytes(b"x")
        before = sorted(os.listdir(clip_root))

        scan_inventory(clip_root)

        assert sorted(os.listdir(clip_root)) == before

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0,
        reason="permission bits are not enforced for root",
    )
    def test_unreadable_subdirectory_is_reported_and_skipped(self, clip_root, make_clip):
        sibling = make_clip("owl")
        locked_dir = clip_root / "private"
        make_clip("duck", directory=locked_dir)
        locked_dir.chmod(0o000)
        try:
            result = scan_inventory(clip_root)
        finally:
            locked_dir.chmod(0o755)

        assert [record.path for record in result.records] == [normalize_clip_path(sibling)]
        errors = dict(result.errors)
        assert isinstance(errors[str(locked_dir)], StatFailedError)
        assert errors[str(locked_dir)].path == str(locked_dir)

    def test_stat_failure_is_collected_per_entry(self, clip_root, make_clip, monkeypatch):
        kept = make_clip("owl", timedelta(days=2))
        broken = make_clip("duck", timedelta(days=1))
        real_walk = scanner._walk_files

        class UnstattableEntry:
            def __init__(self, entry):
                self.path = entry.path
                self.name = entry.name

            def stat(self, follow_symlinks=True):
                raise PermissionError(13, "Permission denied", self.path)

        def walk(root, errors):
            for entry in real_walk(root, errors):
                yield UnstattableEntry(entry) if entry.name == broken.name else entry

        monkeypatch.setattr(scanner, "_walk_files", walk)

        result = scan_inventory(clip_root)

        assert [record.path for record in result.records] == [normalize_clip_path(kept)]
        errors = dict(result.errors)
        assert isinstance(errors[str(broken)], StatFailedError)
        assert isinstance(errors[str(broken)].cause, PermissionError)
