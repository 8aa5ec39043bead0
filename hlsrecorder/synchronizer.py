"""
Multi-variant synchronization for hlsrecorder.

Polls every media playlist of a source concurrently and only hands a batch to
the merge step once all tracks were fetched and agree on their position.
"""

import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from .exceptions import PlaylistFetchError
from .fetcher import PlaylistFetcher
from .models import FetchResult, PlaylistURIs, StreamType, TrackKind
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)

FETCH_ATTEMPTS = 10
RETRY_BACKOFF = 1.5


@dataclass
class FetchBatch:
    """One synchronized poll of every track."""
    stream_type: StreamType
    video: Dict[str, FetchResult] = field(default_factory=dict)
    audio: Dict[Tuple[str, str], FetchResult] = field(default_factory=dict)
    subtitle: Dict[Tuple[str, str], FetchResult] = field(default_factory=dict)

    def results(self) -> Iterator[Tuple[TrackKind, Any, FetchResult]]:
        for bw, result in self.video.items():
            yield TrackKind.VIDEO, bw, result
        for key, result in self.audio.items():
            yield TrackKind.AUDIO, key, result
        for key, result in self.subtitle.items():
            yield TrackKind.SUBTITLE, key, result


def batch_stream_type(results) -> StreamType:
    """VOD if any track ended, else EVENT if any track is an event, else LIVE."""
    types = {result.stream_type for result in results}
    if StreamType.VOD in types:
        return StreamType.VOD
    if StreamType.EVENT in types:
        return StreamType.EVENT
    return StreamType.LIVE


class MultiVariantSynchronizer:
    """
    Fetches all media playlists of a source as one synchronized batch.

    The multivariant playlist is fetched once and cached. Each batch is
    fetched concurrently; a batch with a failed request, or a live batch whose
    tracks report different media sequences, is retried with a fixed backoff.
    """

    def __init__(
        self,
        source_url: str,
        fetcher: Optional[PlaylistFetcher] = None,
        attempts: int = FETCH_ATTEMPTS,
        backoff: float = RETRY_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize synchronizer.

        Args:
            source_url: Multivariant or media playlist URL
            fetcher: PlaylistFetcher used for all requests
            attempts: Attempts per batch before giving up the tick
            backoff: Seconds between attempts
            sleep: Function used to wait between attempts
        """
        self.source_url = source_url
        self.fetcher = fetcher or PlaylistFetcher()
        self.attempts = attempts
        self.backoff = backoff
        self.sleep = sleep
        self.playlist_uris: Optional[PlaylistURIs] = None
        self.multivariant_text: Optional[str] = None

    def load_playlist_uris(self) -> Optional[PlaylistURIs]:
        """
        Resolve and cache the per-track media playlist URLs.

        Returns:
            PlaylistURIs, or None if the source could not be fetched
        """
        if self.playlist_uris is not None:
            return self.playlist_uris

        loaded = retry_with_backoff(
            lambda: self.fetcher.fetch_multivariant(self.source_url),
            attempts=self.attempts,
            backoff=self.backoff,
            retry_on=(PlaylistFetchError,),
            sleep=self.sleep,
        )
        if loaded is None:
            logger.warning(f"Could not load source playlist {self.source_url}")
            return None

        self.playlist_uris, self.multivariant_text = loaded
        return self.playlist_uris

    def fetch_batch(self) -> Optional[FetchBatch]:
        """
        Fetch one synchronized batch of all tracks.

        Returns:
            FetchBatch, or None if no consistent batch could be fetched

        Raises:
            PlaylistParseError: If a track returns malformed playlist text
        """
        uris = self.load_playlist_uris()
        if uris is None:
            return None

        batch = retry_with_backoff(
            lambda: self._fetch_all(uris),
            attempts=self.attempts,
            backoff=self.backoff,
            is_success=self._is_aligned,
            retry_on=(PlaylistFetchError,),
            sleep=self.sleep,
        )
        if batch is None:
            logger.warning(f"No synchronized batch after {self.attempts} attempts")
        return batch

    def _fetch_all(self, uris: PlaylistURIs) -> FetchBatch:
        fetched: Dict[Tuple[TrackKind, Any], FetchResult] = {}
        failures = []

        with concurrent.futures.ThreadPoolExecutor(max_workers=max(len(uris), 1)) as executor:
            futures = {
                executor.submit(self.fetcher.fetch, url): (kind, key)
                for kind, key, url in uris.items()
            }
            for future in concurrent.futures.as_completed(futures):
                kind, key = futures[future]
                try:
                    fetched[(kind, key)] = future.result()
                except PlaylistFetchError as e:
                    failures.append(f"{kind.value} {key}: {str(e)}")

        if failures:
            raise PlaylistFetchError(f"{len(failures)} of {len(uris)} playlists failed: " + "; ".join(failures))

        # Keep the multivariant order so the first video track stays primary
        batch = FetchBatch(stream_type=batch_stream_type(fetched.values()))
        for kind, key, _ in uris.items():
            target = {TrackKind.VIDEO: batch.video, TrackKind.AUDIO: batch.audio,
                      TrackKind.SUBTITLE: batch.subtitle}[kind]
            target[key] = fetched[(kind, key)]
        return batch

    def _is_aligned(self, batch: FetchBatch) -> bool:
        if batch.stream_type is not StreamType.LIVE:
            return True
        sequences = {result.media_sequence for _, _, result in batch.results()}
        if len(sequences) > 1:
            logger.debug(f"Tracks out of sync, media sequences: {sorted(sequences)}")
            return False
        return True
