"""Smoke tests for the command-line tools."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from storycompass.cli import main


def _write(path: Path, payload: Any) -> Path:
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def _two_path_document(scenario_id: str, low: float, high: float) -> dict[str, Any]:
    return {
        "id": scenario_id,
        "title": scenario_id.title(),
        "scenes": [
            {
                "id": "start",
                "title": "Start",
                "description": "Pick a path.",
                "branches": [
                    {
                        "choice": "low",
                        "next_scene_id": "end",
                        "compass_change": {"axis": "Courage", "delta": low},
                    },
                    {
                        "choice": "high",
                        "next_scene_id": "end",
                        "compass_change": {"axis": "Courage", "delta": high},
                    },
                ],
            },
            {"id": "end", "title": "End", "description": "Done."},
        ],
    }


def test_validate_reports_valid_scenario(
    tmp_path: Path,
    scenario_document: dict[str, Any],
    capsys: pytest.CaptureFixture[str],
) -> None:
    path = _write(tmp_path / "forest.json", scenario_document)

    exit_code = main(["validate", str(path)])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Scenario 'forest': Into the Forest" in output
    assert "Status: valid" in output


def test_validate_fails_on_dangling_reference(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = _two_path_document("broken", 1, 2)
    document["scenes"][1]["next_scene_id"] = "nowhere"
    path = _write(tmp_path / "broken.json", document)

    exit_code = main(["validate", str(path)])

    output = capsys.readouterr().out
    assert exit_code == 1
    assert "Scene 'end' references non-existent scene 'nowhere'" in output


def test_validate_reports_load_failures(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = _write(tmp_path / "bad.json", {"id": "bad", "title": "Bad", "scenes": []})

    exit_code = main(["validate", str(path)])

    assert exit_code == 2
    assert "Failed to load scenario" in capsys.readouterr().out


def test_calibrate_prints_percentiles(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    first = _write(tmp_path / "one.json", _two_path_document("one", 10, 20))
    second = _write(tmp_path / "two.json", _two_path_document("two", 30, 40))

    exit_code = main(
        ["calibrate", str(first), str(second), "--percentile", "50", "--percentile", "100"]
    )

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Courage (4 paths)" in output
    assert "- p50: 25" in output
    assert "- p100: 40" in output


def test_calibrate_uses_default_percentiles(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("STORYCOMPASS_DEFAULT_PERCENTILES", "0")
    path = _write(tmp_path / "one.json", _two_path_document("one", 10, 20))

    exit_code = main(["calibrate", str(path)])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "- p0: 10" in output


def test_calibrate_rejects_out_of_range_percentile(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = _write(tmp_path / "one.json", _two_path_document("one", 10, 20))

    exit_code = main(["calibrate", str(path), "--percentile", "120"])

    assert exit_code == 2
    assert "Calibration failed" in capsys.readouterr().out


def test_validate_defaults_to_scenario_root(
    tmp_path: Path,
    scenario_document: dict[str, Any],
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _write(tmp_path / "forest.json", scenario_document)
    _write(tmp_path / "one.json", _two_path_document("one", 1, 2))
    monkeypatch.setenv("STORYCOMPASS_SCENARIO_ROOT", str(tmp_path))

    exit_code = main(["validate"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Scenario 'forest': Into the Forest" in output
    assert "Scenario 'one': One" in output


def test_calibrate_without_files_or_scenario_root(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("STORYCOMPASS_SCENARIO_ROOT", raising=False)

    exit_code = main(["calibrate"])

    assert exit_code == 2
    assert "STORYCOMPASS_SCENARIO_ROOT is not set" in capsys.readouterr().out


def test_validate_with_empty_scenario_root(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("STORYCOMPASS_SCENARIO_ROOT", str(tmp_path))

    exit_code = main(["validate"])

    assert exit_code == 2
    assert "No scenario documents found" in capsys.readouterr().out
