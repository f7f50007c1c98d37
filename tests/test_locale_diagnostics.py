"""Unit tests for the locale_diagnostics script."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

import locale_diagnostics

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def ini_path(tmp_path: Path) -> Path:
    """Write a configuration using in-memory storage and bundles under tmp_path."""
    messages_dir: Path = tmp_path / "messages"
    messages_dir.mkdir()
    (messages_dir / "en.json").write_text(json.dumps({"greeting": "Hello"}), encoding="utf-8")
    (messages_dir / "zh.json").write_text(json.dumps({"greeting": "你好"}), encoding="utf-8")

    path: Path = tmp_path / "locale_engine.ini"
    path.write_text(
        "[DETECTION]\n"
        "ENABLE_IP_LOOKUP = False\n"
        "\n"
        "[STORAGE]\n"
        'BACKEND = "memory"\n'
        "\n"
        "[CACHE]\n"
        "ENABLE_PERSISTENCE = False\n"
        "PRELOAD_LOCALES = []\n"
        f"MESSAGES_DIR = {str(messages_dir)!r}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(locale_diagnostics, "setup_logging", lambda _config: None)


def test_parse_arguments() -> None:
    args = locale_diagnostics.parse_arguments(["--languages", "zh-CN", "en", "--timezone", "Asia/Tokyo", "--debug"])

    assert args.config == locale_diagnostics.CFG_FILE
    assert args.languages == ["zh-CN", "en"]
    assert args.timezone == "Asia/Tokyo"
    assert args.debug is True
    assert args.default_locale is None


def test_parse_arguments_rejects_unknown_option(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        locale_diagnostics.parse_arguments(["--bogus"])

    assert exc_info.value.code == 2
    assert "unrecognized arguments" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_main_prints_report(ini_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code: int = await locale_diagnostics.main(
        ["--config", str(ini_path), "--languages", "zh-CN", "--timezone", "Asia/Shanghai"]
    )

    out: str = capsys.readouterr().out
    assert exit_code == 0
    assert "Locale: zh (served: zh)" in out
    assert "Source: combined" in out
    assert "Total detections: 1" in out


@pytest.mark.asyncio
async def test_main_reports_missing_configuration(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code: int = await locale_diagnostics.main(["--config", str(tmp_path / "missing.ini")])

    assert exit_code == 1
    assert "Failed to load configuration file" in capsys.readouterr().err
