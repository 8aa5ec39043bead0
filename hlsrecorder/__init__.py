"""
hlsrecorder - Live HLS Recording and DVR Toolkit

Polls a live HLS source and keeps a de-duplicated, index-stamped copy of every
rendition that can be served back as an EVENT, sliding-window LIVE or VOD
playlist.

Features:
- Synchronized polling of all video, audio and subtitle renditions
- Duplicate-free merging of sliding live windows
- Sliding window retention with media/discontinuity sequence accounting
- Record duration limits with optional VOD finalization
- Manifest rendering preserving keys, init sections, cues and date ranges

Example usage:
    >>> from hlsrecorder import HLSRecorder
    >>>
    >>> recorder = HLSRecorder(
    ...     "https://example.com/live/master.m3u8",
    ...     record_duration=120,
    ...     vod=True,
    ... )
    >>> recorder.on_segments_added(lambda event: print(event.stream_type))
    >>> recorder.start()
    >>> print(recorder.render_multivariant())
"""

import logging

__version__ = "0.1.0"
__author__ = "hlsrecorder Contributors"
__license__ = "MIT"

# Add NullHandler to prevent "No handler found" warnings
# Users should configure logging in their application if they want to see logs
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Exceptions
from .exceptions import HLSRecorderError, InvalidSourceError, PlaylistFetchError, PlaylistParseError

# Data models
from .models import (
    StreamType,
    PlayheadState,
    TrackKind,
    Segment,
    SegmentKey,
    SegmentMap,
    DateRange,
    Cue,
    Track,
    SegmentStore,
    PlaylistURIs,
    RecorderConfig,
    SegmentsAddedEvent,
    ENDLIST_SEGMENT,
)

# Main classes
from .recorder import HLSRecorder
from .fetcher import PlaylistFetcher, is_m3u8_url, classify_stream_type
from .synchronizer import MultiVariantSynchronizer, FetchBatch
from .merger import SegmentMerger, count_new_entries
from .window import WindowManager

# Manifest rendering
from .serializer import (
    format_m3u8_from_segments,
    generate_media_m3u8,
    generate_audio_m3u8,
    generate_subtitle_m3u8,
    generate_multivariant_m3u8,
)

# Utility functions
from .utils import calculate_hls_duration, format_decimal

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",

    # Main classes
    "HLSRecorder",
    "PlaylistFetcher",
    "MultiVariantSynchronizer",
    "SegmentMerger",
    "WindowManager",

    # Manifest rendering
    "format_m3u8_from_segments",
    "generate_media_m3u8",
    "generate_audio_m3u8",
    "generate_subtitle_m3u8",
    "generate_multivariant_m3u8",

    # Utility functions
    "calculate_hls_duration",
    "format_decimal",
    "is_m3u8_url",
    "classify_stream_type",
    "count_new_entries",

    # Models
    "StreamType",
    "PlayheadState",
    "TrackKind",
    "Segment",
    "SegmentKey",
    "SegmentMap",
    "DateRange",
    "Cue",
    "Track",
    "SegmentStore",
    "PlaylistURIs",
    "FetchBatch",
    "RecorderConfig",
    "SegmentsAddedEvent",
    "ENDLIST_SEGMENT",

    # Exceptions
    "HLSRecorderError",
    "InvalidSourceError",
    "PlaylistFetchError",
    "PlaylistParseError",
]
