#!/usr/bin/env python3
"""Human-readable Standard MIDI File inspector.

Decodes a single `.mid` file and prints the header, the tempo map and
the merged event stream with each event's tick and wall-clock offset.
Nothing is played.
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys
from typing import Iterable, List, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from smfplay.decoder import Song, load_smf  # noqa: E402
from smfplay.errors import SMFError, SourceError  # noqa: E402
from smfplay.events import EventKind, RawEvent, describe  # noqa: E402
from smfplay.source import read_source  # noqa: E402
from smfplay.trace import format_timestamp  # noqa: E402


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect a Standard MIDI File")
    parser.add_argument("source", help="MIDI file path or http(s) URL")
    parser.add_argument(
        "--track",
        type=int,
        default=None,
        help="Only list events from this track (0-based)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Stop after this many events",
    )
    parser.add_argument(
        "--no-events",
        action="store_true",
        help="Print header and tempo map only",
    )
    return parser


def render_header(song: Song) -> List[str]:
    header = song.header
    lines = [
        f"Header: format {header.format}, {header.track_count} tracks, "
        f"{song.ticks_per_quarter} ticks/quarter (chunk length {header.length})",
    ]
    for index, events in enumerate(song.tracks):
        names = [e.payload.decode("latin-1") for e in events if e.meta_type == 0x03]
        label = f" {names[0]!r}" if names else ""
        lines.append(f"  track {index:2d}:{label} {len(events)} events")
    lines.append(f"Duration: {format_timestamp(song.duration)}")
    return lines


def render_tempo_map(song: Song) -> List[str]:
    lines = ["Tempo map:"]
    for change in song.tempo_map:
        lines.append(
            f"  tick {change.tick:8d}  {change.us_per_quarter:8d} us/quarter  "
            f"{change.bpm:7.2f} BPM  @ {format_timestamp(song.timeline.elapsed(change.tick))}"
        )
    return lines


def render_events(song: Song, events: Iterable[RawEvent]) -> List[str]:
    lines = []
    for event in events:
        offset = song.timeline.elapsed(event.ticks)
        kind = {EventKind.CHANNEL: "chn", EventKind.META: "met", EventKind.SYSEX: "sys"}[event.kind]
        lines.append(
            f"[{format_timestamp(offset)}] t{event.track:<2d} {event.ticks:8d} {kind} "
            f"{event.hex()[:26]:<26} {describe(event)}"
        )
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)

    try:
        song = load_smf(read_source(args.source))
    except (SMFError, SourceError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    out = render_header(song) + [""] + render_tempo_map(song)
    if not args.no_events:
        events = song.events
        if args.track is not None:
            events = [e for e in events if e.track == args.track]
        if args.limit is not None:
            events = events[: args.limit]
        out += ["", f"Events ({len(events)}):"] + render_events(song, events)
    print("\n".join(out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
