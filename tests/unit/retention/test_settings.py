"""Unit tests for settings parsing and validation."""

from argparse import Namespace
from datetime import timedelta
from pathlib import Path

import pytest

from clip_retention.retention.errors import ConfigurationError
from clip_retention.retention.extensions import DEFAULT_EXTENSIONS, AudioExtension
from clip_retention.retention.policies import RetentionMode
from clip_retention.retention.quota import TrimOrder
from clip_retention.retention.settings import (
    RetentionSettings,
    format_duration,
    parse_bool,
    parse_duration,
    parse_overrides,
    parse_ratio,
)


class TestParseDuration:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("12h", timedelta(hours=12)),
            ("30d", timedelta(days=30)),
            ("2w", timedelta(weeks=2)),
            ("6m", timedelta(days=180)),
            ("1y", timedelta(days=365)),
            ("36", timedelta(hours=36)),
            ("1.5d", timedelta(hours=36)),
            (" 7D ", timedelta(days=7)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "soon", "-3d", "0d", "3x"])
    def test_invalid(self, text):
        with pytest.raises(ConfigurationError):
            parse_duration(text)

    def test_format(self):
        assert format_duration(timedelta(days=30)) == "30d"
        assert format_duration(timedelta(hours=12)) == "12h"


class TestParseRatio:
    @pytest.mark.parametrize("text, expected", [("0.15", 0.15), ("15%", 0.15), (" 0.5 ", 0.5)])
    def test_valid(self, text, expected):
        assert parse_ratio(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["0", "1", "100%", "-0.1", "half"])
    def test_invalid(self, text):
        with pytest.raises(ConfigurationError):
            parse_ratio(text)


class TestParseOverrides:
    def test_string_form(self):
        assert parse_overrides("owl:5, duck:2") == {"owl": 5, "duck": 2}

    def test_empty(self):
        assert parse_overrides("") == {}

    def test_mapping_form(self):
        assert parse_overrides({"owl": "3"}) == {"owl": 3}

    @pytest.mark.parametrize("text", ["owl", "owl:x", ":3", "owl:-1"])
    def test_invalid(self, text):
        with pytest.raises(ConfigurationError):
            parse_overrides(text)


class TestParseBool:
    @pytest.mark.parametrize("text, expected", [("true", True), ("Yes", True), ("0", False), ("off", False)])
    def test_values(self, text, expected):
        assert parse_bool(text) is expected

    def test_invalid(self):
        with pytest.raises(ConfigurationError):
            parse_bool("maybe")


class TestRetentionSettings:
    """Test RetentionSettings construction."""

    def test_defaults(self):
        settings = RetentionSettings.from_config({})

        assert settings.retention_mode is RetentionMode.AGE
        assert settings.max_age == timedelta(days=30)
        assert settings.allowed_extensions == DEFAULT_EXTENSIONS
        assert settings.quota_trim_order is TrimOrder.NEWEST_FIRST
        assert settings.max_deletions_per_pass == 1000
        assert settings.dry_run is False

    def test_from_config(self, tmp_path):
        config = {
            "retention_mode": "usage",
            "scan_root": "clips",
            "max_age": "2w",
            "min_free_space_ratio": "20%",
            "min_clips_per_species": "3",
            "species_min_overrides": "owl:5",
            "allowed_extensions": ".wav, .flac",
            "quota_trim_order": "oldest_first",
            "max_deletions_per_pass": "0",
            "dry_run": "true",
            "pass_interval_sec": "30",
            "audit_db": "state/retention.db",
            "unknown_key": "ignored",
        }

        settings = RetentionSettings.from_config(config, base_dir=tmp_path)

        assert settings.retention_mode is RetentionMode.USAGE
        assert settings.scan_root == tmp_path / "clips"
        assert settings.max_age == timedelta(weeks=2)
        assert settings.min_free_space_ratio == pytest.approx(0.2)
        assert settings.min_clips_per_species == 3
        assert settings.species_min_overrides == {"owl": 5}
        assert settings.allowed_extensions == (AudioExtension.WAV, AudioExtension.FLAC)
        assert settings.quota_trim_order is TrimOrder.OLDEST_FIRST
        assert settings.max_deletions_per_pass == 0
        assert settings.dry_run is True
        assert settings.pass_interval_sec == 30.0
        assert settings.audit_db == tmp_path / "state" / "retention.db"

    @pytest.mark.parametrize(
        "config",
        [
            {"retention_mode": "fifo"},
            {"min_free_space_ratio": "1.5"},
            {"min_clips_per_species": "-1"},
            {"min_clips_per_species": "lots"},
            {"allowed_extensions": ".wav, .exe"},
            {"max_deletions_per_pass": "-5"},
            {"pass_interval_sec": "0"},
        ],
    )
    def test_invalid_config(self, config):
        with pytest.raises(ConfigurationError):
            RetentionSettings.from_config(config)

    def test_apply_args_overrides_only_given_values(self):
        base = RetentionSettings.from_config({"min_clips_per_species": "7", "max_age": "10d"})
        args = Namespace(
            scan_root=Path("/data/clips"),
            mode="usage",
            max_age=None,
            min_free_ratio="25%",
            min_clips=0,
            dry_run=True,
            audit_db=None,
            log_level="DEBUG",
            log_file=None,
            console_output=None,
        )

        settings = base.apply_args(args)

        assert settings.scan_root == Path("/data/clips")
        assert settings.retention_mode is RetentionMode.USAGE
        assert settings.max_age == timedelta(days=10)
        assert settings.min_free_space_ratio == pytest.approx(0.25)
        assert settings.min_clips_per_species == 0
        assert settings.dry_run is True
        assert settings.log_level == "debug"
        assert settings.console_output is True
        assert base.min_clips_per_species == 7

    def test_to_dict(self):
        data = RetentionSettings.from_config({"species_min_overrides": "owl:2"}).to_dict()

        assert data["retention_mode"] == "age"
        assert data["max_age"] == "30d"
        assert data["species_min_overrides"] == {"owl": 2}
        assert data["allowed_extensions"] == [".wav", ".mp3", ".flac", ".aac", ".opus"]
