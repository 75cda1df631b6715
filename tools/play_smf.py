#!/usr/bin/env python3
"""Play a Standard MIDI File to a MIDI output port with a live event trace.

Requirements:
  pip install mido python-rtmidi

Usage:
  # List available MIDI ports:
  python tools/play_smf.py --list-ports

  # Play a local file on the default port:
  python tools/play_smf.py song.mid

  # Download and play, on a named port:
  python tools/play_smf.py https://example.com/song.mid --port "FluidSynth"

  # Trace only, no MIDI output:
  python tools/play_smf.py song.mid --dry-run
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
import threading
import time
from typing import List, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from smfplay.config import PlayerConfig, load_config  # noqa: E402
from smfplay.decoder import Song, load_smf  # noqa: E402
from smfplay.errors import (  # noqa: E402
    ConfigError,
    PlaybackCancelled,
    SMFError,
    SourceError,
)
from smfplay.scheduler import PlaybackReport, PlaybackScheduler  # noqa: E402
from smfplay.sinks import MidoOutputSink, NullSink, list_output_ports  # noqa: E402
from smfplay.source import read_source  # noqa: E402
from smfplay.trace import TraceObserver  # noqa: E402

EXIT_ERROR = 2
EXIT_INTERRUPTED = 130


def list_ports() -> None:
    """Print available MIDI output ports."""
    ports = list_output_ports()
    if not ports:
        print("No MIDI output ports found.")
        print("Start a software synth or connect a device, then try again.")
    else:
        print("Available MIDI output ports:")
        for p in ports:
            print(f"  {p}")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Play a Standard MIDI File with a real-time event trace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --list-ports
  %(prog)s song.mid
  %(prog)s song.mid --port "FluidSynth" --no-meta
  %(prog)s https://example.com/song.mid --timeout 10
""",
    )
    parser.add_argument("source", nargs="?", default=None,
                        help="MIDI file path or http(s) URL (prompted if omitted)")
    parser.add_argument("--list-ports", action="store_true",
                        help="List available MIDI output ports and exit")
    parser.add_argument("--port", "-p", type=str, default=None,
                        help="MIDI output port name (default: backend default)")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="JSON config file (default: $SMFPLAY_CONFIG)")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Download timeout in seconds (default: 30)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Trace events without opening a MIDI port")
    parser.add_argument("--no-meta", action="store_true",
                        help="Hide meta events in the trace")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="No per-event trace, only status lines")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="More logging (-v info, -vv debug)")
    return parser


def _prompt_source() -> str:
    print("Enter MIDI file path or URL:")
    try:
        text = input()
    except EOFError:
        return ""
    # Control characters only (e.g. a stray ^@) count as no input.
    if all(not ch.isprintable() for ch in text):
        return ""
    return text


def _play_in_thread(scheduler: PlaybackScheduler, song: Song) -> PlaybackReport:
    """Run playback on a worker so Ctrl-C in the main thread can cancel it."""
    outcome: List[object] = []

    def _worker() -> None:
        try:
            outcome.append(scheduler.play(song.events, song.tempo_map, song.ticks_per_quarter))
        except BaseException as exc:  # re-raised in the main thread below
            outcome.append(exc)

    worker = threading.Thread(target=_worker, name="smfplay-playback", daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.1)
    except KeyboardInterrupt:
        scheduler.cancel()
        worker.join()

    result = outcome[0]
    if isinstance(result, BaseException):
        raise result
    return result  # type: ignore[return-value]


def run(source: str, config: PlayerConfig, *, dry_run: bool, quiet: bool) -> int:
    trace = TraceObserver(show_meta=config.show_meta)

    data = read_source(source, timeout=config.download_timeout)
    song = load_smf(data)
    header = song.header
    trace.message(
        "SCAN",
        f"Format {header.format} | Tracks 0x{header.track_count:02X} | "
        f"Division 0x{song.ticks_per_quarter:04X} ticks/quarter",
    )
    for change in song.tempo_map[1:]:
        trace.message("TEMPO", f"BPM: {change.bpm:.1f} (0x{change.us_per_quarter:X} us/quarter) @ tick {change.tick}")
    trace.message("PROC", f"Processed 0x{len(song.events):X} MIDI events, {song.duration:.1f}s")

    sink = NullSink() if dry_run else MidoOutputSink(config.port)
    observers = [] if quiet else [trace]
    scheduler = PlaybackScheduler(
        sink,
        observers,
        late_threshold=config.late_threshold_ms / 1000,
        all_notes_off_on_stop=config.all_notes_off_on_stop,
    )

    try:
        trace.message("EXEC", "Initiating MIDI stream...")
        if config.start_delay_ms:
            time.sleep(config.start_delay_ms / 1000)
        trace.message("LIVE", "REAL-TIME MIDI TRACE")
        print("-" * 81)
        try:
            report = _play_in_thread(scheduler, song)
        except PlaybackCancelled as exc:
            trace.message("STOP", f"Interrupted after 0x{exc.dispatched:X} events")
            return EXIT_INTERRUPTED
    finally:
        sink.close()

    trace.message("COMP", "MIDI playback finished")
    trace.message(
        "STATS",
        f"0x{report.dispatched:X} events in {report.elapsed:.2f}s | "
        f"late: {report.late_events} (max {report.max_lateness * 1000:.1f} ms) | "
        f"final buffer: 0x{report.active_notes:02X} active notes",
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.list_ports:
        list_ports()
        return 0

    try:
        config = load_config(args.config).with_overrides(
            port=args.port,
            download_timeout=args.timeout,
            show_meta=False if args.no_meta else None,
        )
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_ERROR

    source = args.source if args.source is not None else _prompt_source()

    try:
        return run(source, config, dry_run=args.dry_run, quiet=args.quiet)
    except (SMFError, SourceError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
