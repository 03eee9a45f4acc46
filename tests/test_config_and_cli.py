from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from metastore.cli import build_parser, main
from metastore.config_loader import DEFAULT_STORAGE_KEY, Config
from metastore.logging_setup import EmojiFormatter


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_config_defaults_when_file_missing(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("METASTORE_KV_PATH", raising=False)
    monkeypatch.delenv("METASTORE_STORAGE_KEY", raising=False)

    config = Config.load(tmp_path / "missing.json")

    assert config.storage.storage_key == DEFAULT_STORAGE_KEY
    assert config.logging.verbose is False


def test_config_round_trip_and_env_override(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("METASTORE_KV_PATH", raising=False)
    path = tmp_path / "metastore.json"
    config = Config.load(tmp_path / "missing.json")
    config.storage.kv_path = str(tmp_path / "kv.json")
    config.logging.verbose = True
    config.save(path)

    monkeypatch.setenv("METASTORE_STORAGE_KEY", "from_env")
    loaded = Config.load(path)

    assert loaded.storage.kv_path == str(tmp_path / "kv.json")
    assert loaded.storage.storage_key == "from_env"
    assert loaded.logging.verbose is True


def test_config_path_from_env(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"KV_PATH": "/tmp/x.json"}), encoding="utf-8")
    monkeypatch.setenv("METASTORE_CONFIG", str(path))
    monkeypatch.delenv("METASTORE_KV_PATH", raising=False)

    assert Config.load().storage.kv_path == "/tmp/x.json"


def test_emoji_formatter_prefixes_errors_only_once() -> None:
    formatter = EmojiFormatter("%(message)s")
    error = logging.LogRecord("t", logging.ERROR, __file__, 1, "boom", None, None)
    marked = logging.LogRecord("t", logging.ERROR, __file__, 1, "❌ already", None, None)
    info = logging.LogRecord("t", logging.INFO, __file__, 1, "fine", None, None)

    assert formatter.format(error) == "❌ boom"
    assert formatter.format(marked) == "❌ already"
    assert formatter.format(info) == "fine"


def _run_cli(args: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(args)
    return exc_info.value.code


@pytest.fixture
def cli_base(tmp_path: Path) -> list[str]:
    return ["--config", str(tmp_path / "none.json"), "--kv-path", str(tmp_path / "kv.json")]


def test_cli_set_get_list_delete(cli_base: list[str], capsys) -> None:
    assert _run_cli(cli_base + ["set", "42", "weekly", "2", "9500"]) == 0
    assert _run_cli(cli_base + ["get", "42", "weekly", "2"]) == 0
    assert capsys.readouterr().out.strip() == "9500"

    assert _run_cli(cli_base + ["list", "42"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["value"] == 9500.0

    assert _run_cli(cli_base + ["delete", "42", "weekly", "2"]) == 0
    assert _run_cli(cli_base + ["get", "42", "weekly", "2"]) == 0
    assert capsys.readouterr().out.strip() == "10000 (default)"


def test_cli_activation_defaults(cli_base: list[str], capsys) -> None:
    assert _run_cli(cli_base + ["get", "42", "daily", "0", "--activation"]) == 0
    assert capsys.readouterr().out.strip() == "24 (default)"


def test_cli_set_invalid_value_fails(cli_base: list[str]) -> None:
    assert _run_cli(cli_base + ["set", "42", "daily", "0", "abc"]) == 1


def test_cli_clear_with_confirmation_flag(cli_base: list[str], capsys) -> None:
    _run_cli(cli_base + ["set", "1", "daily", "0", "5"])
    _run_cli(cli_base + ["set", "1", "daily", "0", "6", "-a"])

    assert _run_cli(cli_base + ["clear", "--yes"]) == 0
    capsys.readouterr()
    _run_cli(cli_base + ["list", "1"])
    assert capsys.readouterr().out == ""


def test_cli_clear_cancelled(cli_base: list[str], monkeypatch, capsys) -> None:
    _run_cli(cli_base + ["set", "1", "daily", "0", "5"])
    monkeypatch.setattr("builtins.input", lambda prompt: "n")

    assert _run_cli(cli_base + ["clear"]) == 0
    capsys.readouterr()
    _run_cli(cli_base + ["get", "1", "daily", "0"])
    assert capsys.readouterr().out.strip() == "5"


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_setup_logging_writes_console_and_file(tmp_path: Path) -> None:
    from metastore.logging_setup import setup_logging

    log_file = tmp_path / "metastore.log"
    setup_logging(verbose=True, log_file=str(log_file))

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2

    logging.getLogger("metastore.test").error("disk gone")
    for handler in root.handlers:
        handler.flush()
    root.handlers[1].close()

    assert "❌ disk gone" in log_file.read_text(encoding="utf-8")
