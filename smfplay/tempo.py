"""Tempo map and tick to wall-clock conversion.

A tempo map is a list of ``TempoChange`` breakpoints in tick order.  It
always starts with the 120 BPM default at tick 0; a Set Tempo event at
tick 0 is appended after the default instead of replacing it.  When two
breakpoints share a tick the later one governs everything from that tick
on, so the duplicate contributes a zero-length segment.

Elapsed time for a tick is the piecewise-linear integral over the
segments::

  sum((segment_end - segment_start) * us_per_quarter / ticks_per_quarter)
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Sequence

from .errors import UnsupportedFormatError
from .events import DEFAULT_TEMPO

if TYPE_CHECKING:
    from .events import RawEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TempoChange:
    tick: int
    us_per_quarter: int

    @property
    def bpm(self) -> float:
        return 60_000_000 / self.us_per_quarter


def build_tempo_map(events: Iterable["RawEvent"]) -> List[TempoChange]:
    """Collect Set Tempo events from a merged stream, seeded with the default."""
    tempo_map = [TempoChange(0, DEFAULT_TEMPO)]
    for event in events:
        tempo = event.tempo
        if tempo is None:
            continue
        if tempo == 0:
            raise UnsupportedFormatError(f"Set Tempo of 0 us/quarter at tick {event.ticks}")
        tempo_map.append(TempoChange(event.ticks, tempo))
        log.debug("tempo at tick %d: %d us/quarter", event.ticks, tempo)
    return tempo_map


def _check_resolution(ticks_per_quarter: int) -> None:
    if ticks_per_quarter <= 0:
        raise ValueError(f"ticks per quarter note must be positive, got {ticks_per_quarter}")


def ticks_to_microseconds(
    ticks: int, tempo_map: Sequence[TempoChange], ticks_per_quarter: int
) -> float:
    """Microseconds from tick 0 to ``ticks``; 0 for ``ticks <= 0``."""
    _check_resolution(ticks_per_quarter)
    if ticks <= 0:
        return 0.0

    total = 0.0
    current = 0
    for i, change in enumerate(tempo_map):
        segment_end = tempo_map[i + 1].tick if i + 1 < len(tempo_map) else ticks
        if segment_end > ticks:
            segment_end = ticks
        if segment_end > current:
            total += (segment_end - current) * change.us_per_quarter / ticks_per_quarter
            current = segment_end
        if current >= ticks:
            break
    return total


def ticks_to_elapsed(
    ticks: int, tempo_map: Sequence[TempoChange], ticks_per_quarter: int
) -> float:
    """Seconds from tick 0 to ``ticks``."""
    return ticks_to_microseconds(ticks, tempo_map, ticks_per_quarter) / 1_000_000


def ticks_to_ms(
    ticks: int, tempo_map: Sequence[TempoChange], ticks_per_quarter: int
) -> float:
    return ticks_to_microseconds(ticks, tempo_map, ticks_per_quarter) / 1000


class TempoTimeline:
    """Tempo map with cumulative offsets precomputed per breakpoint.

    ``elapsed(tick)`` gives the same answer as :func:`ticks_to_elapsed`
    but only integrates the segment containing ``tick``, so converting a
    whole event stream is linear in events rather than events x breakpoints.
    """

    def __init__(self, tempo_map: Sequence[TempoChange], ticks_per_quarter: int) -> None:
        _check_resolution(ticks_per_quarter)
        if not tempo_map:
            tempo_map = [TempoChange(0, DEFAULT_TEMPO)]
        self.tempo_map = list(tempo_map)
        self.ticks_per_quarter = ticks_per_quarter
        self._ticks: List[int] = []
        self._offsets: List[float] = []

        total = 0.0
        current = 0
        for i, change in enumerate(self.tempo_map):
            if i > 0 and change.tick > current:
                previous = self.tempo_map[i - 1]
                total += (change.tick - current) * previous.us_per_quarter / ticks_per_quarter
                current = change.tick
            self._ticks.append(current)
            self._offsets.append(total)

    def microseconds(self, ticks: int) -> float:
        if ticks <= 0:
            return 0.0
        # Last breakpoint at or before ``ticks``; ties resolve to the later entry.
        i = bisect.bisect_right(self._ticks, ticks) - 1
        if i < 0:
            i = 0
        change = self.tempo_map[i]
        start = self._ticks[i]
        return self._offsets[i] + (ticks - start) * change.us_per_quarter / self.ticks_per_quarter

    def elapsed(self, ticks: int) -> float:
        return self.microseconds(ticks) / 1_000_000
