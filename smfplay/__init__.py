"""Standard MIDI File decoding, tempo mapping and real-time playback."""

from .config import PlayerConfig, load_config  # noqa: F401
from .decoder import (  # noqa: F401
    HEADER_TAG,
    TRACK_TAG,
    SMFHeader,
    Song,
    decode,
    load_smf,
    merge,
)
from .errors import (  # noqa: F401
    CancelledError,
    ConfigError,
    FormatError,
    PlaybackCancelled,
    SMFError,
    SourceError,
    TruncatedDataError,
    UnsupportedFormatError,
)
from .events import (  # noqa: F401
    DEFAULT_TEMPO,
    EventKind,
    RawEvent,
    describe,
    note_name,
)
from .reader import ByteCursor, decode_vlq, encode_vlq  # noqa: F401
from .scheduler import (  # noqa: F401
    ActiveNoteSet,
    PlaybackReport,
    PlaybackScheduler,
    PlaybackState,
    play,
)
from .sinks import (  # noqa: F401
    MidoOutputSink,
    NullSink,
    Observer,
    OutputSink,
    RecordingSink,
    list_output_ports,
)
from .source import read_source  # noqa: F401
from .tempo import (  # noqa: F401
    TempoChange,
    TempoTimeline,
    build_tempo_map,
    ticks_to_elapsed,
    ticks_to_microseconds,
    ticks_to_ms,
)
from .trace import TraceObserver, format_event  # noqa: F401
