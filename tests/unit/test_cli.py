"""Unit tests for the command line entrypoint."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import yaml

from cloud_triggers.cli import main


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    """``main`` reconfigures the root logger; put pytest's handlers back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_manifest_to_stdout(sample_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["manifest", str(sample_path), "--output", "-"])

    out = capsys.readouterr().out
    manifest = yaml.safe_load(out)
    assert code == 0
    assert manifest["specVersion"] == "v1alpha1"
    assert len(manifest["endpoints"]) == 13
    assert "hello" in manifest["endpoints"]


def test_manifest_to_default_file(
    sample_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main(["manifest", str(sample_path.parent)])

    written = tmp_path / "functions.yaml"
    assert code == 0
    assert written.exists()
    assert "Wrote 13 endpoint(s)" in capsys.readouterr().out
    assert "resize-images" in yaml.safe_load(written.read_text(encoding="utf-8"))["endpoints"]


def test_manifest_json_format(
    sample_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    target = tmp_path / "out" / "functions.json"

    code = main(["manifest", str(sample_path), "-o", str(target), "--format", "json"])

    assert code == 0
    manifest = json.loads(target.read_text(encoding="utf-8"))
    assert manifest["params"][0]["name"] == "MIN_MEM"


def test_manifest_missing_path(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["manifest", str(tmp_path / "nope.py")])

    assert code == 2
    assert "No such file or directory" in capsys.readouterr().err


def test_invalid_settings_exit_code(
    sample_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("CLOUD_TRIGGERS_FORMAT", "xml")

    code = main(["manifest", str(sample_path)])

    assert code == 2
    assert "Configuration error" in capsys.readouterr().err


def test_identifier(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["identifier", "onMessagePublished_orderscreated"])

    assert code == 0
    assert capsys.readouterr().out.strip() == "on-message-published-orderscreated"


def test_blank_identifier(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["identifier", "   "])

    assert code == 2
    assert "must not be blank" in capsys.readouterr().err
