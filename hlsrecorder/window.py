"""
Window and retention management for hlsrecorder.

Keeps the recorded timeline within the sliding window, tracks how much has
been recorded and finalizes tracks with an endlist entry.
"""

import logging

from .models import ENDLIST_SEGMENT, SegmentStore, StreamType

logger = logging.getLogger(__name__)

UNBOUNDED = -1


class WindowManager:
    """
    Applies window eviction, record duration accounting and finalization.

    Eviction pops the front entry of every track in lockstep so that all
    renditions keep the same segment count and share one media sequence.
    """

    def __init__(self, store: SegmentStore, window_size: float = UNBOUNDED,
                 record_duration: float = UNBOUNDED, default_window_size: float = 300.0):
        self.store = store
        self.window_size = window_size
        self.record_duration = record_duration
        self.default_window_size = default_window_size
        self.recorded = 0.0
        self._live_seen = False

    def effective_window(self, stream_type: StreamType) -> float:
        """
        Window in seconds applied for a stream type.

        Args:
            stream_type: Current stream type

        Returns:
            Configured window, the default window for live sources, or -1 (unbounded)
        """
        if self.window_size != UNBOUNDED:
            return self.window_size
        # A live source that later ends keeps the window it was recorded with
        if stream_type is StreamType.LIVE or self._live_seen:
            return self.default_window_size
        return UNBOUNDED

    def enforce(self, stream_type: StreamType) -> int:
        """
        Evict front entries until the primary track fits the window.

        Args:
            stream_type: Stream type used to select the window

        Returns:
            Number of lockstep evictions performed
        """
        if stream_type is StreamType.LIVE:
            self._live_seen = True
        window = self.effective_window(stream_type)
        primary = self.store.primary_track()
        if window == UNBOUNDED or primary is None:
            return 0

        evictions = 0
        duration = primary.duration()
        while duration > window:
            tracks = list(self.store.all_tracks())
            if any(not track.seg_list or track.seg_list[0].endlist for track in tracks):
                break

            for track in tracks:
                popped = track.seg_list.pop(0)
                track.evicted += 1
                if track is primary:
                    duration -= popped.duration or 0.0
                    self.store.media_sequence += 1
                    if popped.discontinuity:
                        self.store.discontinuity_sequence += 1
            evictions += 1

        if evictions:
            logger.debug(f"Evicted {evictions} segments per track, window={window}s, "
                         f"media sequence now {self.store.media_sequence}")
        return evictions

    def add_recorded(self, seconds: float) -> None:
        self.recorded += seconds

    def record_duration_reached(self) -> bool:
        return self.record_duration != UNBOUNDED and self.recorded >= self.record_duration

    def finalize(self) -> bool:
        """
        Append the endlist entry to every track that does not have one yet.

        Returns:
            True if any track was finalized by this call
        """
        finalized = False
        for track in self.store.all_tracks():
            if track.finalized:
                continue
            track.seg_list.append(ENDLIST_SEGMENT)
            finalized = True

        if finalized:
            logger.info(f"Recording finalized after {self.recorded:.3f}s")
        return finalized
