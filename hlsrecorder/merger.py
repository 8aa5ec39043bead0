"""
Segment merging for hlsrecorder.

Merges each polled batch of media playlists into the recorded tracks. Only
entries not yet seen are appended, so repeated polls of a sliding live window
never duplicate a segment.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from .models import SegmentStore, StreamType, Track, TrackKind, FetchResult
from .segment import playlist_item_to_segment

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Outcome of merging one batch."""
    appended: int = 0  # segments appended across all tracks
    primary_duration: float = 0.0  # seconds appended to the primary video track


def count_new_entries(source_count: int, source_media_seq: int, track: Track, sliding: bool) -> int:
    """
    Count how many trailing entries of a source playlist are new to a track.

    A sliding (live) source is compared against the previous poll: every step
    of the media sequence removed one entry from the front, so the growth in
    count plus the sequence step is the number of entries appended since. A
    growing (event or VOD) source is compared against everything the track
    has ingested so far.

    Args:
        source_count: Number of segments in the polled playlist
        source_media_seq: EXT-X-MEDIA-SEQUENCE of the polled playlist
        track: Track state before the merge
        sliding: Use the live formula

    Returns:
        Number of entries to take from the end of the playlist

    Example:
        >>> track = Track(media_seq=10, seg_count=6, evicted=4)
        >>> count_new_entries(6, 12, track, sliding=True)
        2
    """
    if not track.seg_list and track.evicted == 0:
        return source_count

    if sliding:
        new = (source_count - track.seg_count) + (source_media_seq - track.media_seq)
    else:
        new = source_count - track.ingested

    return max(0, min(new, source_count))


def _uses_sliding_formula(stream_type: StreamType, previous_type: StreamType) -> bool:
    if stream_type is StreamType.LIVE:
        return True
    # A live source that just ended keeps its window; compare against the last poll
    return stream_type is StreamType.VOD and previous_type is StreamType.LIVE


class SegmentMerger:
    """
    Appends newly observed segments to the tracks of a SegmentStore.

    Tracks are created on first observation. The first registered video track
    is the primary track whose appended duration is reported back for record
    duration accounting.
    """

    def __init__(self, store: SegmentStore):
        """
        Initialize segment merger.

        Args:
            store: Store receiving the merged segments
        """
        self.store = store

    def merge(self, batch: Any, previous_type: StreamType = StreamType.NONE) -> MergeResult:
        """
        Merge one fetch batch into the store.

        Args:
            batch: FetchBatch produced by the synchronizer
            previous_type: Stream type of the previous merged batch

        Returns:
            MergeResult with the number of appended segments and primary duration
        """
        sliding = _uses_sliding_formula(batch.stream_type, previous_type)
        result = MergeResult()

        for kind, key, fetched in batch.results():
            appended, duration = self.merge_track(kind, key, fetched, sliding)
            result.appended += appended
            result.primary_duration += duration

        if result.appended:
            logger.debug(f"Merged {result.appended} segments "
                         f"({result.primary_duration:.3f}s on primary track), type={batch.stream_type.value}")
        return result

    def merge_track(self, kind: TrackKind, key: Any, fetched: FetchResult, sliding: bool):
        """
        Merge one polled media playlist into its track.

        Args:
            kind: Track kind
            key: Bandwidth string or (group id, language)
            fetched: Fetched media playlist
            sliding: Use the live formula when counting new entries

        Returns:
            Tuple of (appended segment count, seconds appended to the primary track)
        """
        tracks = self.store.tracks_of(kind)
        track = tracks.get(key)
        if track is None:
            track = Track()
            tracks[key] = track
            logger.info(f"Tracking new {kind.value} rendition {key}")

        if track.finalized:
            return 0, 0.0

        playlist = fetched.playlist
        self._update_store_attributes(playlist)

        items = playlist.segments
        new = count_new_entries(len(items), fetched.media_sequence, track, sliding)

        index = track.next_index()
        duration = 0.0
        for item in items[len(items) - new:]:
            segment = playlist_item_to_segment(item, index, base_url=fetched.url)
            track.seg_list.append(segment)
            duration += segment.duration or 0.0
            index += 1

        track.media_seq = fetched.media_sequence
        track.seg_count = len(items)

        is_primary = kind is TrackKind.VIDEO and key == self.store.primary_key()
        return new, duration if is_primary else 0.0

    def _update_store_attributes(self, playlist: Any) -> None:
        target_duration: Optional[float] = playlist.target_duration
        if target_duration:
            self.store.target_duration = max(self.store.target_duration, math.ceil(target_duration))
        if playlist.is_independent_segments:
            self.store.independent_segments = True
