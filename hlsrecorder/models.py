"""
Data models for hlsrecorder.

Defines the canonical segment records, per-rendition tracks and the aggregate
segment store shared by the synchronizer, merge engine, window manager and
serializer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class StreamType(Enum):
    """Source playlist type, detected on every poll."""
    NONE = "none"
    LIVE = "live"
    EVENT = "event"
    VOD = "vod"


class PlayheadState(Enum):
    """Lifecycle of the polling loop. STOPPED and CRASHED are terminal."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    CRASHED = "crashed"


class TrackKind(Enum):
    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"


@dataclass(frozen=True)
class SegmentKey:
    """Encryption descriptor (EXT-X-KEY) with an absolute key URI."""
    method: str
    uri: Optional[str] = None
    iv: Optional[str] = None
    key_format: Optional[str] = None
    key_format_versions: Optional[str] = None


@dataclass(frozen=True)
class SegmentMap:
    """Fragmented-container init section (EXT-X-MAP)."""
    uri: str
    byterange: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    """Timed metadata interval (EXT-X-DATERANGE)."""
    id: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    class_name: Optional[str] = None
    duration: Optional[float] = None
    planned_duration: Optional[float] = None
    # (ATTRIBUTE-NAME, raw value) pairs, e.g. SCTE35-OUT or X-COM-EXAMPLE
    attributes: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class Cue:
    """Ad-marker descriptor built from CUE-OUT / CUE-OUT-CONT / CUE-IN tags."""
    cue_out: bool = False
    cue_in: bool = False
    cont: bool = False
    elapsed: Optional[float] = None
    duration: Optional[float] = None
    scte_data: Optional[str] = None
    asset_data: Optional[str] = None


@dataclass(frozen=True)
class Segment:
    """One entry of a recorded rendition timeline."""
    index: Optional[int] = None
    duration: Optional[float] = None
    uri: Optional[str] = None
    discontinuity: bool = False
    key: Optional[SegmentKey] = None
    map: Optional[SegmentMap] = None
    program_date_time: Optional[datetime] = None
    dateranges: Tuple[DateRange, ...] = ()
    cue: Optional[Cue] = None
    endlist: bool = False


# The synthetic entry closing a finalized timeline
ENDLIST_SEGMENT = Segment(endlist=True)


@dataclass
class Track:
    """Accumulated state of one rendition."""
    media_seq: int = 0
    seg_count: int = 0
    seg_list: List[Segment] = field(default_factory=list)
    evicted: int = 0

    @property
    def finalized(self) -> bool:
        return bool(self.seg_list) and self.seg_list[-1].endlist

    @property
    def ingested(self) -> int:
        """Number of media segments appended over the track's lifetime."""
        stored = sum(1 for seg in self.seg_list if not seg.endlist)
        return stored + self.evicted

    def duration(self) -> float:
        return sum(seg.duration for seg in self.seg_list if seg.duration)

    def next_index(self) -> int:
        for seg in reversed(self.seg_list):
            if seg.index is not None:
                return seg.index + 1
        return self.evicted + 1

    def copy(self) -> "Track":
        return Track(
            media_seq=self.media_seq,
            seg_count=self.seg_count,
            seg_list=list(self.seg_list),
            evicted=self.evicted,
        )


@dataclass
class SegmentStore:
    """
    Aggregate recording state across all renditions.

    Video tracks are keyed by bandwidth (as a string, "1" for a bare media
    playlist source); audio and subtitle tracks by (group id, language). The
    first registered video track is the primary track used for duration and
    window accounting.
    """
    video: Dict[str, Track] = field(default_factory=dict)
    audio: Dict[Tuple[str, str], Track] = field(default_factory=dict)
    subtitle: Dict[Tuple[str, str], Track] = field(default_factory=dict)
    media_sequence: int = 0
    discontinuity_sequence: int = 0
    target_duration: int = 0
    independent_segments: bool = False

    def tracks_of(self, kind: TrackKind) -> Dict[Any, Track]:
        if kind is TrackKind.VIDEO:
            return self.video
        if kind is TrackKind.AUDIO:
            return self.audio
        return self.subtitle

    def all_tracks(self) -> Iterator[Track]:
        yield from self.video.values()
        yield from self.audio.values()
        yield from self.subtitle.values()

    def primary_key(self) -> Optional[str]:
        return next(iter(self.video), None)

    def primary_track(self) -> Optional[Track]:
        key = self.primary_key()
        return self.video[key] if key is not None else None

    def is_empty(self) -> bool:
        return not (self.video or self.audio or self.subtitle)

    def snapshot(self) -> "SegmentStore":
        """Return a copy whose tracks can be read without affecting the live store."""
        return SegmentStore(
            video={bw: track.copy() for bw, track in self.video.items()},
            audio={key: track.copy() for key, track in self.audio.items()},
            subtitle={key: track.copy() for key, track in self.subtitle.items()},
            media_sequence=self.media_sequence,
            discontinuity_sequence=self.discontinuity_sequence,
            target_duration=self.target_duration,
            independent_segments=self.independent_segments,
        )


@dataclass
class PlaylistURIs:
    """Absolute media playlist URL per track, resolved from the multivariant index."""
    video: Dict[str, str] = field(default_factory=dict)
    audio: Dict[Tuple[str, str], str] = field(default_factory=dict)
    subtitle: Dict[Tuple[str, str], str] = field(default_factory=dict)

    def items(self) -> Iterator[Tuple[TrackKind, Any, str]]:
        for bw, url in self.video.items():
            yield TrackKind.VIDEO, bw, url
        for key, url in self.audio.items():
            yield TrackKind.AUDIO, key, url
        for key, url in self.subtitle.items():
            yield TrackKind.SUBTITLE, key, url

    def __len__(self) -> int:
        return len(self.video) + len(self.audio) + len(self.subtitle)


@dataclass
class FetchResult:
    """One fetched and parsed media playlist."""
    url: str
    text: str
    playlist: Any  # m3u8.M3U8
    media_sequence: int
    stream_type: StreamType


@dataclass
class RecorderConfig:
    """Configuration for HLSRecorder."""
    record_duration: float = -1  # seconds, -1 = unbounded
    window_size: float = -1  # seconds, -1 = unbounded (default window for live)
    vod: bool = False  # finalize with an endlist when stopping
    vod_real_time: bool = False  # reserved
    fetch_timeout: float = 3.0
    fetch_attempts: int = 10
    retry_backoff: float = 1.5
    default_window_size: float = 300.0
    default_tick_interval: float = 6.0
    min_tick_interval: float = 0.002


@dataclass(frozen=True)
class SegmentsAddedEvent:
    """Payload delivered to segments-added callbacks."""
    segments: SegmentStore
    stream_type: StreamType
