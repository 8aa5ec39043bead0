"""
HLS recorder for hlsrecorder.

HLSRecorder polls a live HLS source on a playhead thread and accumulates every
rendition into a recorded timeline that can be served back as an EVENT, a
sliding-window LIVE or a finalized VOD playlist.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

import requests

from .exceptions import InvalidSourceError
from .fetcher import PlaylistFetcher, is_m3u8_url
from .merger import SegmentMerger
from .models import (
    PlayheadState,
    RecorderConfig,
    SegmentStore,
    SegmentsAddedEvent,
    StreamType,
)
from .serializer import (
    generate_audio_m3u8,
    generate_media_m3u8,
    generate_multivariant_m3u8,
    generate_subtitle_m3u8,
)
from .synchronizer import MultiVariantSynchronizer
from .window import UNBOUNDED, WindowManager

logger = logging.getLogger(__name__)


class HLSRecorder:
    """
    Records a live HLS stream.

    The recorder fetches all renditions of the source once per target
    duration, appends newly published segments to its own timeline and
    notifies subscribers. Polling stops when the source ends, when the record
    duration is reached or when stop() is called.

    Example:
        >>> recorder = HLSRecorder("https://example.com/live/master.m3u8", record_duration=120, vod=True)
        >>> recorder.on_segments_added(lambda event: print(event.stream_type))
        >>> recorder.start()
        >>> print(recorder.render_media("1200000"))
    """

    def __init__(
        self,
        source: str,
        record_duration: float = -1,
        window_size: float = -1,
        vod: bool = False,
        vod_real_time: bool = False,
        session: Optional[requests.Session] = None,
        fetch_timeout: float = 3.0,
        fetch_attempts: int = 10,
        retry_backoff: float = 1.5,
        default_window_size: float = 300.0,
        default_tick_interval: float = 6.0,
        min_tick_interval: float = 0.002,
    ):
        """
        Initialize HLS recorder.

        Args:
            source: URL of a multivariant or media playlist
            record_duration: Seconds to record, -1 for unbounded
            window_size: Sliding window in seconds, -1 for the default (live sources only)
            vod: Finalize the recording with an endlist when the record duration is reached
            vod_real_time: Reserved, stored only
            session: Optional requests session used for all playlist requests
            fetch_timeout: Per-request timeout in seconds
            fetch_attempts: Attempts per poll before the tick is skipped
            retry_backoff: Seconds between attempts
            default_window_size: Window applied to live sources without window_size
            default_tick_interval: Poll interval until a segment duration is known
            min_tick_interval: Lower bound of the wait between polls

        Raises:
            InvalidSourceError: If source is not an http(s) M3U8 URL
        """
        if not is_m3u8_url(source):
            raise InvalidSourceError(f"Not a valid M3U8 URL: {source!r}")

        self.source = source
        self.config = RecorderConfig(
            record_duration=record_duration,
            window_size=window_size,
            vod=vod,
            vod_real_time=vod_real_time,
            fetch_timeout=fetch_timeout,
            fetch_attempts=fetch_attempts,
            retry_backoff=retry_backoff,
            default_window_size=default_window_size,
            default_tick_interval=default_tick_interval,
            min_tick_interval=min_tick_interval,
        )

        self.store = SegmentStore()
        self.fetcher = PlaylistFetcher(session=session, timeout=fetch_timeout)
        self.synchronizer = MultiVariantSynchronizer(
            source,
            fetcher=self.fetcher,
            attempts=fetch_attempts,
            backoff=retry_backoff,
            sleep=lambda seconds: self._timer(seconds),
        )
        self.merger = SegmentMerger(self.store)
        self.window = WindowManager(
            self.store,
            window_size=window_size,
            record_duration=record_duration,
            default_window_size=default_window_size,
        )

        self._lock = threading.RLock()
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._looping = False
        self._state = PlayheadState.IDLE
        self._stream_type = StreamType.NONE
        self._segment_callbacks: List[Callable[[SegmentsAddedEvent], None]] = []
        self._error_callbacks: List[Callable[[BaseException], None]] = []

    @classmethod
    def from_config(cls, source: str, config: RecorderConfig,
                    session: Optional[requests.Session] = None) -> "HLSRecorder":
        """
        Create a recorder from a RecorderConfig object.

        Args:
            source: URL of a multivariant or media playlist
            config: RecorderConfig with recording parameters
            session: Optional requests session

        Returns:
            New HLSRecorder in the IDLE state
        """
        return cls(
            source,
            record_duration=config.record_duration,
            window_size=config.window_size,
            vod=config.vod,
            vod_real_time=config.vod_real_time,
            session=session,
            fetch_timeout=config.fetch_timeout,
            fetch_attempts=config.fetch_attempts,
            retry_backoff=config.retry_backoff,
            default_window_size=config.default_window_size,
            default_tick_interval=config.default_tick_interval,
            min_tick_interval=config.min_tick_interval,
        )

    @property
    def state(self) -> PlayheadState:
        return self._state

    @property
    def stream_type(self) -> StreamType:
        return self._stream_type

    @property
    def recorded_duration(self) -> float:
        """Seconds appended to the primary video track so far."""
        return self.window.recorded

    def on_segments_added(self, callback: Callable[[SegmentsAddedEvent], None]) -> None:
        """Register a callback invoked with a SegmentsAddedEvent after each productive poll."""
        self._segment_callbacks.append(callback)

    def on_error(self, callback: Callable[[BaseException], None]) -> None:
        """Register a callback invoked with the exception that crashed the playhead."""
        self._error_callbacks.append(callback)

    def start(self, block: bool = True) -> None:
        """
        Start recording.

        Runs one poll immediately, then keeps polling either in the calling
        thread or, with block=False, in a background daemon thread.

        Args:
            block: Run the polling loop in the calling thread

        Raises:
            RuntimeError: If the recorder was already started
            PlaylistParseError: If the first poll returns malformed playlist text
        """
        with self._lock:
            if self._state is not PlayheadState.IDLE:
                raise RuntimeError(f"Recorder cannot start from state {self._state.value}")
            self._state = PlayheadState.RUNNING

        logger.info(f"Starting playhead for {self.source}")
        try:
            done = self._tick()
        except Exception as e:
            self._crash(e)
            raise

        if done:
            self._set_state(PlayheadState.STOPPED)
            return

        if block:
            self._run_playhead()
        else:
            self._looping = True
            self._thread = threading.Thread(target=self._run_playhead, name="hls-playhead", daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Request the playhead to stop.

        A running recording of a source that has not ended is finalized and
        subscribers are notified once more before the state becomes STOPPED.

        Args:
            timeout: Seconds to wait for the background thread (default: wait indefinitely)
        """
        logger.info(f"Stop requested for {self.source}")
        self._stop_requested.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

        # A running loop finishes the recording on its next iteration
        if self._state is PlayheadState.RUNNING and not self._looping:
            self._finish_on_request()
            return

        with self._lock:
            if self._state is PlayheadState.IDLE:
                self._state = PlayheadState.STOPPED
            elif self._state is PlayheadState.STOPPED and self._stream_type is not StreamType.VOD:
                self.window.finalize()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until a background playhead has exited."""
        if self._thread is not None:
            self._thread.join(timeout)

    def snapshot(self) -> SegmentStore:
        """Return a consistent copy of the recorded tracks."""
        with self._lock:
            return self.store.snapshot()

    def render_media(self, bandwidth) -> Optional[str]:
        """
        Render the recorded media playlist of a video rendition.

        Args:
            bandwidth: Bandwidth of the rendition ("1" for a media playlist source)

        Returns:
            Playlist text, or None if not ready
        """
        with self._lock:
            return generate_media_m3u8(bandwidth, self.store, playlist_type=self._playlist_type())

    def render_audio(self, group: str, language: str) -> Optional[str]:
        with self._lock:
            return generate_audio_m3u8(group, language, self.store, playlist_type=self._playlist_type())

    def render_subtitle(self, group: str, language: str) -> Optional[str]:
        with self._lock:
            return generate_subtitle_m3u8(group, language, self.store, playlist_type=self._playlist_type())

    def render_multivariant(self) -> Optional[str]:
        """
        Render the multivariant playlist referencing the recorded renditions.

        Returns:
            Playlist text, or None before the source playlist was loaded
        """
        uris = self.synchronizer.playlist_uris
        if uris is None:
            return None
        return generate_multivariant_m3u8(uris, self.synchronizer.multivariant_text)

    def _playlist_type(self) -> Optional[str]:
        if self.window.effective_window(self._stream_type) == UNBOUNDED:
            return "EVENT"
        return None

    def _timer(self, seconds: float) -> None:
        self._stop_requested.wait(seconds)

    def _tick_interval(self) -> float:
        primary = self.store.primary_track()
        if primary is not None:
            for seg in reversed(primary.seg_list):
                if seg.duration:
                    return seg.duration
        return self.config.default_tick_interval

    def _run_playhead(self) -> None:
        self._looping = True
        try:
            self._loop()
        finally:
            self._looping = False

    def _loop(self) -> None:
        while True:
            if self._stop_requested.is_set():
                self._finish_on_request()
                return

            interval = self._tick_interval()
            started = time.monotonic()
            try:
                done = self._tick()
            except Exception as e:
                self._crash(e)
                return

            if done:
                self._set_state(PlayheadState.STOPPED)
                return

            elapsed = time.monotonic() - started
            self._timer(max(interval - elapsed, self.config.min_tick_interval))

    def _tick(self) -> bool:
        """
        Poll the source once and merge the result.

        Returns:
            True if polling should stop
        """
        batch = self.synchronizer.fetch_batch()
        if batch is None:
            logger.warning(f"Skipping poll of {self.source}, no synchronized batch")
            return False

        with self._lock:
            result = self.merger.merge(batch, previous_type=self._stream_type)
            if batch.stream_type is not self._stream_type:
                logger.info(f"Source stream type is {batch.stream_type.value}")
            self._stream_type = batch.stream_type
            self.window.add_recorded(result.primary_duration)

            finalized = False
            if self._stream_type is StreamType.VOD:
                finalized = self.window.finalize()
            self.window.enforce(self._stream_type)

            reached = self.window.record_duration_reached()
            if reached and self.config.vod:
                finalized = self.window.finalize() or finalized
                self._stream_type = StreamType.VOD

        if result.appended or finalized:
            self._emit()

        if batch.stream_type is StreamType.VOD:
            logger.info(f"Source ended, recorded {self.window.recorded:.3f}s")
            return True
        if reached:
            logger.info(f"Record duration of {self.config.record_duration}s reached")
            return True
        return False

    def _finish_on_request(self) -> None:
        with self._lock:
            finalized = False
            if self._stream_type is not StreamType.VOD:
                finalized = self.window.finalize()
        if finalized:
            self._emit()
        self._set_state(PlayheadState.STOPPED)

    def _emit(self) -> None:
        if self._state is not PlayheadState.RUNNING:
            return
        with self._lock:
            event = SegmentsAddedEvent(segments=self.store.snapshot(), stream_type=self._stream_type)
        for callback in list(self._segment_callbacks):
            callback(event)

    def _crash(self, error: BaseException) -> None:
        logger.error(f"Playhead crashed: {str(error)}")
        self._set_state(PlayheadState.CRASHED)
        for callback in list(self._error_callbacks):
            callback(error)

    def _set_state(self, state: PlayheadState) -> None:
        with self._lock:
            if self._state in (PlayheadState.STOPPED, PlayheadState.CRASHED):
                return
            self._state = state
        logger.info(f"Playhead {state.value}")
