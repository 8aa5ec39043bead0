"""
Playlist fetching for hlsrecorder.

Fetches HLS playlists over HTTP with a per-request timeout, classifies their
stream type and parses them with the m3u8 library. Also resolves a
multivariant playlist into absolute per-track media playlist URLs.
"""

import logging
from typing import Optional, Tuple
from urllib.parse import urljoin, urlparse

import m3u8
import requests

from .exceptions import PlaylistFetchError, PlaylistParseError
from .models import FetchResult, PlaylistURIs, StreamType

logger = logging.getLogger(__name__)

FAIL_TIMEOUT = 3.0

# Key used for the single synthetic track of a bare media playlist source
SINGLE_TRACK_KEY = "1"


def is_m3u8_url(url: str) -> bool:
    """
    Check if a URL points to an M3U8 playlist.

    Args:
        url: URL to check

    Returns:
        True if URL is an http(s) URL referencing an M3U8 playlist, False otherwise

    Example:
        >>> is_m3u8_url("https://example.com/live/master.m3u8")
        True
        >>> is_m3u8_url("https://example.com/video.mp4")
        False
    """
    if not isinstance(url, str):
        return False
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    return ".m3u8" in url.lower()


def classify_stream_type(text: str) -> StreamType:
    """
    Detect the stream type of raw playlist text.

    Args:
        text: Media playlist content

    Returns:
        VOD if an end marker is present, EVENT if the playlist declares
        itself an event, LIVE otherwise
    """
    if "#EXT-X-ENDLIST" in text:
        return StreamType.VOD
    if "#EXT-X-PLAYLIST-TYPE:EVENT" in text:
        return StreamType.EVENT
    return StreamType.LIVE


def parse_playlist(text: str, uri: Optional[str] = None) -> m3u8.M3U8:
    """
    Parse playlist text with the m3u8 library.

    Args:
        text: Playlist content
        uri: URL the content was fetched from, used as base URI

    Returns:
        Parsed m3u8.M3U8 object

    Raises:
        PlaylistParseError: If the content is not a valid playlist
    """
    if not text or not text.lstrip().startswith("#EXTM3U"):
        raise PlaylistParseError(f"Not an M3U8 playlist: {uri}")
    try:
        return m3u8.loads(text, uri=uri)
    except (ValueError, IndexError, m3u8.ParseError) as e:
        raise PlaylistParseError(f"Failed to parse playlist {uri}: {str(e)}") from e


class PlaylistFetcher:
    """
    Fetches and parses HLS playlists.

    Every request is bound to its own timeout. Any transport error, timeout or
    non-2xx status is raised as PlaylistFetchError so callers can retry.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = FAIL_TIMEOUT):
        """
        Initialize playlist fetcher.

        Args:
            session: Optional requests session (cookies, proxies, adapters)
            timeout: Request timeout in seconds (default: 3.0)
        """
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_text(self, url: str) -> str:
        """
        Download playlist text.

        Args:
            url: Playlist URL

        Returns:
            Response body as text

        Raises:
            PlaylistFetchError: On timeout, transport error or non-2xx status
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"Request to {url} failed: {str(e)}")
            raise PlaylistFetchError(f"Request to {url} failed: {str(e)}") from e

        if not 200 <= response.status_code < 300:
            logger.debug(f"Request to {url} returned status {response.status_code}")
            raise PlaylistFetchError(f"Request to {url} returned status {response.status_code}")

        return response.text

    def fetch(self, url: str) -> FetchResult:
        """
        Fetch and parse one media playlist.

        Args:
            url: Media playlist URL

        Returns:
            FetchResult with parsed playlist, media sequence and stream type
        """
        text = self.get_text(url)
        stream_type = classify_stream_type(text)
        playlist = parse_playlist(text, uri=url)
        media_sequence = playlist.media_sequence or 0

        logger.debug(f"Fetched {url}: type={stream_type.value}, sequence={media_sequence}, "
                     f"segments={len(playlist.segments)}")
        return FetchResult(
            url=url,
            text=text,
            playlist=playlist,
            media_sequence=media_sequence,
            stream_type=stream_type,
        )

    def fetch_multivariant(self, url: str) -> Tuple[PlaylistURIs, Optional[str]]:
        """
        Fetch the source playlist and resolve all track playlist URLs.

        If the source is a media playlist rather than a multivariant index, a
        single video track keyed "1" pointing at the source is synthesized.

        Args:
            url: Source playlist URL

        Returns:
            Tuple of (PlaylistURIs, multivariant text or None for a media playlist)
        """
        text = self.get_text(url)
        playlist = parse_playlist(text, uri=url)

        if not playlist.is_variant:
            logger.info(f"Source is a media playlist, recording it as a single track: {url}")
            return PlaylistURIs(video={SINGLE_TRACK_KEY: url}), None

        uris = PlaylistURIs()
        for variant in playlist.playlists:
            bandwidth = str(variant.stream_info.bandwidth)
            if bandwidth in uris.video:
                logger.warning(f"Duplicate variant bandwidth {bandwidth}, keeping {variant.uri}")
            uris.video[bandwidth] = urljoin(url, variant.uri)

        # Renditions without a URI are muxed into the variant streams
        for media in playlist.media:
            if not media.uri:
                continue
            if media.type == "AUDIO":
                tracks = uris.audio
            elif media.type == "SUBTITLES":
                tracks = uris.subtitle
            else:
                continue
            key = (media.group_id, media.language or "und")
            if key in tracks:
                logger.warning(f"Duplicate {media.type.lower()} rendition {key[0]}_{key[1]}, keeping {media.uri}")
            tracks[key] = urljoin(url, media.uri)

        logger.info(f"Multivariant playlist collected: {len(uris.video)} video, "
                    f"{len(uris.audio)} audio and {len(uris.subtitle)} subtitle tracks")
        return uris, text
