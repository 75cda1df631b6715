from __future__ import annotations

import datetime
import io
from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from smfplay.events import RawEvent, describe, note_name  # noqa: E402
from smfplay.trace import (  # noqa: E402
    TraceObserver,
    format_event,
    format_message,
    format_timestamp,
    velocity_bar,
)


@pytest.mark.parametrize(
    "number,name",
    [(0, "C-1"), (21, "A0"), (60, "C4"), (61, "C#4"), (69, "A4"), (127, "G9")],
)
def test_note_name(number: int, name: str) -> None:
    assert note_name(number) == name


@pytest.mark.parametrize(
    "seconds,text",
    [
        (0, "00:00:00.000"),
        (1.25, "00:00:01.250"),
        (61.0004, "00:01:01.000"),
        (3723.5, "01:02:03.500"),
        (-0.2, "00:00:00.000"),
    ],
)
def test_format_timestamp(seconds: float, text: str) -> None:
    assert format_timestamp(seconds) == text


def test_velocity_bar() -> None:
    assert velocity_bar(0) == "░" * 10
    assert velocity_bar(127) == "█" * 10
    assert velocity_bar(64) == "█" * 5 + "░" * 5


def test_format_message() -> None:
    now = datetime.datetime(2024, 1, 1, 12, 34, 56, 789000)
    assert format_message("TEMPO", "BPM: 120.0", now) == "[12:34:56.789] [TEMPO] BPM: 120.0"
    assert format_message("NET", "hi", now) == "[12:34:56.789] [NET  ] hi"


def test_note_on_line() -> None:
    line = format_event(RawEvent.channel(0, 0x90, 60, 100), 1.25, 1)
    assert line == (
        "[00:00:01.250] NOTE_ON  C4   CH01 VEL:0x64 ███████░░░ | ACTV: 0x01 | NOTE: 0x3C"
    )


def test_note_on_with_zero_velocity_renders_as_note_off() -> None:
    line = format_event(RawEvent.channel(0, 0x93, 61, 0), 0.5, 0)
    assert line.startswith("[00:00:00.500] NOTE_OFF C#4  CH04 VEL:0x00")
    assert line.endswith("| ACTV: 0x00 | NOTE: 0x3D")


def test_control_change_line() -> None:
    line = format_event(RawEvent.channel(0, 0xB0, 64, 127), 0, 0)
    assert "CTRL_CHG SUST" in line
    assert "CTRL: 0x40" in line


@pytest.mark.parametrize(
    "event,fragment",
    [
        (RawEvent.channel(0, 0xC2, 5), "PROG_CHG CH03 PROGRAM 5"),
        (RawEvent.channel(0, 0xE0, 0x00, 0x40), "PITCH    CH01 VAL:0x2000 (+0)"),
        (RawEvent.channel(0, 0xD1, 70), "Channel Pressure - CH 2, Pressure 70"),
        (RawEvent.tempo_change(0, 600_000), "META     Set Tempo 100.0 BPM"),
        (RawEvent.meta(0, 0x03, b"Piano"), "Track Name 'Piano'"),
        (RawEvent.sysex(0, 0xF0, b"\x7E\x7F\x09\x01\xF7"), "SYSEX    SysEx 5 bytes"),
    ],
)
def test_other_event_lines(event: RawEvent, fragment: str) -> None:
    assert fragment in format_event(event, 0, 0)


def test_describe_pitch_bend_value() -> None:
    assert describe(RawEvent.channel(0, 0xE5, 0x7F, 0x7F)) == "Pitch Bend - CH 6, Value 16383"


def test_describe_meta_fallbacks() -> None:
    assert describe(RawEvent.meta(0, 0x58, b"\x03\x02\x18\x08")) == "Time Signature 3/4"
    assert describe(RawEvent.meta(0, 0x59, b"\xFE\x01")) == "Key Signature -2 minor"
    assert describe(RawEvent.meta(0, 0x2F)) == "End of Track"
    assert describe(RawEvent.meta(0, 0x60)) == "Meta Event 60"


def test_trace_observer_writes_lines() -> None:
    stream = io.StringIO()
    observer = TraceObserver(stream, show_meta=False)
    observer(RawEvent.meta(0, 0x03, b"Piano"), 0, 0)
    observer(RawEvent.channel(0, 0x90, 60, 100), 0, 1)
    observer(RawEvent.channel(480, 0x80, 60, 0), 0.5, 0)
    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    assert observer.lines == 2
    assert "NOTE_ON" in lines[0]
    assert "NOTE_OFF" in lines[1]
