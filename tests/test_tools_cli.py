"""CLI integration tests for tools/play_smf.py and tools/inspect_smf.py."""

from __future__ import annotations

import json
import os
from pathlib import Path
import subprocess
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
TOOLS_DIR = REPO_ROOT / "tools"
if str(Path(__file__).resolve().parent) not in sys.path:
    sys.path.insert(0, str(Path(__file__).resolve().parent))

from smf_fixtures import ev, smf, tempo, track  # noqa: E402


def _run_cli(script: str, *args: str, env_extra: dict = None) -> subprocess.CompletedProcess:
    env = dict(os.environ)
    env["PYTHONPATH"] = str(REPO_ROOT)
    env.pop("SMFPLAY_CONFIG", None)
    if env_extra:
        env.update(env_extra)
    return subprocess.run(
        [sys.executable, str(TOOLS_DIR / script), *args],
        cwd=str(REPO_ROOT),
        env=env,
        text=True,
        capture_output=True,
        check=False,
        timeout=60,
    )


def _short_song(path: Path) -> Path:
    conductor = track(
        ev(0, 0xFF, 0x03, 0x05, *b"Tempo"),
        tempo(0, 600_000),
    )
    lead = track(
        ev(0, 0xFF, 0x03, 0x04, *b"Lead"),
        ev(0, 0xC0, 0x05),
        ev(0, 0x90, 60, 100),
        ev(24, 0x80, 60, 0),
        ev(0, 0x91, 64, 80),
        ev(24, 0x81, 64, 0),
    )
    path.write_bytes(smf(conductor, lead, division=480))
    return path


def test_inspect_prints_header_tempo_and_events(tmp_path: Path) -> None:
    song = _short_song(tmp_path / "short.mid")
    result = _run_cli("inspect_smf.py", str(song))
    assert result.returncode == 0, result.stderr
    out = result.stdout
    assert "Header: format 1, 2 tracks, 480 ticks/quarter" in out
    assert "track  0: 'Tempo'" in out
    assert "track  1: 'Lead' 7 events" in out
    assert "100.00 BPM" in out
    assert "Events (10):" in out
    assert "Note On - CH 1, C4 (60), VEL 100" in out


def test_inspect_track_filter_and_limit(tmp_path: Path) -> None:
    song = _short_song(tmp_path / "short.mid")
    result = _run_cli("inspect_smf.py", str(song), "--track", "1", "--limit", "3")
    assert result.returncode == 0, result.stderr
    assert "Events (3):" in result.stdout
    assert "Set Tempo" not in result.stdout.split("Events (3):")[1]


def test_inspect_rejects_non_midi(tmp_path: Path) -> None:
    bogus = tmp_path / "bogus.mid"
    bogus.write_bytes(b"RIFF\x00\x00\x00\x04WAVE")
    result = _run_cli("inspect_smf.py", str(bogus))
    assert result.returncode == 2
    assert "MThd" in result.stderr


def test_play_dry_run_traces_every_event(tmp_path: Path) -> None:
    song = _short_song(tmp_path / "short.mid")
    result = _run_cli("play_smf.py", str(song), "--dry-run")
    assert result.returncode == 0, result.stderr
    out = result.stdout
    assert "[SCAN ] Format 1 | Tracks 0x02 | Division 0x01E0 ticks/quarter" in out
    assert "[TEMPO] BPM: 100.0" in out
    assert out.count("NOTE_ON ") == 2
    assert out.count("NOTE_OFF") == 2
    assert "PROG_CHG CH01 PROGRAM 5" in out
    assert "[COMP ] MIDI playback finished" in out
    assert "final buffer: 0x00 active notes" in out


def test_play_dry_run_quiet_and_no_meta(tmp_path: Path) -> None:
    song = _short_song(tmp_path / "short.mid")
    quiet = _run_cli("play_smf.py", str(song), "--dry-run", "--quiet")
    assert quiet.returncode == 0, quiet.stderr
    assert "NOTE_ON" not in quiet.stdout
    assert "[STATS]" in quiet.stdout

    no_meta = _run_cli("play_smf.py", str(song), "--dry-run", "--no-meta")
    assert no_meta.returncode == 0, no_meta.stderr
    assert " META " not in no_meta.stdout
    assert "NOTE_ON" in no_meta.stdout


def test_play_reads_config_from_env(tmp_path: Path) -> None:
    song = _short_song(tmp_path / "short.mid")
    config = tmp_path / "player.json"
    config.write_text(json.dumps({"show_meta": False}), encoding="utf-8")
    result = _run_cli("play_smf.py", str(song), "--dry-run", env_extra={"SMFPLAY_CONFIG": str(config)})
    assert result.returncode == 0, result.stderr
    assert " META " not in result.stdout


def test_play_bad_config_exits_2(tmp_path: Path) -> None:
    song = _short_song(tmp_path / "short.mid")
    config = tmp_path / "player.json"
    config.write_text(json.dumps({"volume": 11}), encoding="utf-8")
    result = _run_cli("play_smf.py", str(song), "--dry-run", "--config", str(config))
    assert result.returncode == 2
    assert "unknown config keys: volume" in result.stderr


def test_play_missing_file_exits_2(tmp_path: Path) -> None:
    result = _run_cli("play_smf.py", str(tmp_path / "nope.mid"), "--dry-run")
    assert result.returncode == 2
    assert "not found" in result.stderr


def test_zero_tempo_file_exits_2(tmp_path: Path) -> None:
    path = tmp_path / "zero_tempo.mid"
    path.write_bytes(smf(track(tempo(0, 0), ev(480, 0x90, 60, 100))))
    for script, extra in (("play_smf.py", ["--dry-run"]), ("inspect_smf.py", [])):
        result = _run_cli(script, str(path), *extra)
        assert result.returncode == 2, script
        assert "Set Tempo of 0" in result.stderr


def test_play_smpte_file_exits_2(tmp_path: Path) -> None:
    path = tmp_path / "smpte.mid"
    path.write_bytes(smf(track(ev(0, 0x90, 60, 100)), division=0xE728))
    result = _run_cli("play_smf.py", str(path), "--dry-run")
    assert result.returncode == 2
    assert "SMPTE" in result.stderr
