"""Unit tests for the command line entry point."""

import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from clip_retention.cli import main as cli_main


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch):
    """Keep the CLI away from the user's state directory and root handlers."""
    monkeypatch.setattr(cli_main, "ensure_directories", lambda: None)
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)


@pytest.fixture
def config_file(tmp_path, clip_root):
    path = tmp_path / "config.txt"
    path.write_text(
        "\n".join(
            [
                "retention_mode = age",
                "scan_root = clips",
                "max_age = 7d",
                "min_clips_per_species = 0",
                "audit_db = state/retention.db",
                "console_output = false",
            ]
        ),
        encoding="utf-8",
    )
    return path


def _argv(command, config_file, tmp_path, *extra):
    return [command, "--config", str(config_file), "--log-file", str(tmp_path / "logs" / "cli.log"), *extra]


class TestParseArgs:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            cli_main.parse_args([])

    def test_watch_interval(self):
        args = cli_main.parse_args(["watch", "--interval", "30", "--mode", "usage"])

        assert args.command == "watch"
        assert args.interval == 30.0
        assert args.mode == "usage"

    def test_rejects_unknown_mode(self):
        with pytest.raises(SystemExit):
            cli_main.parse_args(["run", "--mode", "fifo"])


class TestCommands:
    @pytest.mark.asyncio
    async def test_run_prints_summary(self, tmp_path, config_file, make_clip, capsys):
        old = make_clip("owl", timedelta(days=30), now=datetime.now(timezone.utc))
        fresh = make_clip("owl", timedelta(days=1), now=datetime.now(timezone.utc))

        code = await cli_main.main(_argv("run", config_file, tmp_path))

        summary = json.loads(capsys.readouterr().out)
        assert code == 0
        assert summary["deleted"] == 1
        assert not old.exists()
        assert fresh.exists()

    @pytest.mark.asyncio
    async def test_dry_run_flag(self, tmp_path, config_file, make_clip, capsys):
        old = make_clip("owl", timedelta(days=30), now=datetime.now(timezone.utc))

        code = await cli_main.main(_argv("run", config_file, tmp_path, "--dry-run"))

        summary = json.loads(capsys.readouterr().out)
        assert code == 0
        assert summary["dry_run"] is True
        assert old.exists()

    @pytest.mark.asyncio
    async def test_inspect_lists_candidates_without_deleting(self, tmp_path, config_file, make_clip, capsys):
        old = make_clip("owl", timedelta(days=30), now=datetime.now(timezone.utc))

        code = await cli_main.main(_argv("inspect", config_file, tmp_path))

        report = json.loads(capsys.readouterr().out)
        assert code == 0
        assert [item["reason"] for item in report["candidates"]] == ["age"]
        assert report["candidates"][0]["species"] == "owl"
        assert old.exists()

    @pytest.mark.asyncio
    async def test_history_lists_audit_entries(self, tmp_path, config_file, make_clip, capsys):
        make_clip("owl", timedelta(days=30), now=datetime.now(timezone.utc))
        await cli_main.main(_argv("run", config_file, tmp_path))
        capsys.readouterr()

        code = await cli_main.main(_argv("history", config_file, tmp_path, "--limit", "5"))

        entries = json.loads(capsys.readouterr().out)
        assert code == 0
        assert len(entries) == 1
        assert entries[0]["filename"].endswith(".wav")

    @pytest.mark.asyncio
    async def test_invalid_config_exits_2(self, tmp_path, config_file, capsys):
        config_file.write_text("max_age = forever\n", encoding="utf-8")

        code = await cli_main.main(_argv("run", config_file, tmp_path))

        assert code == 2
        assert "Configuration error" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_missing_config_exits_2(self, tmp_path):
        code = await cli_main.main(["run", "--config", str(tmp_path / "nope.txt")])

        assert code == 2

    @pytest.mark.asyncio
    async def test_missing_scan_root_exits_1(self, tmp_path, config_file, clip_root):
        clip_root.rmdir()

        code = await cli_main.main(_argv("run", config_file, tmp_path))

        assert code == 1
