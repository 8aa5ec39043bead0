"""
Utility functions for hlsrecorder.

Number formatting shared by the serializer and a helper that probes the total
duration of an HLS stream.
"""

import logging
from typing import Optional

from .fetcher import PlaylistFetcher

logger = logging.getLogger(__name__)


def format_decimal(value: float, precision: int = 3) -> str:
    """
    Format a number without trailing zeros.

    Args:
        value: Number to format
        precision: Maximum number of decimals (default: 3)

    Returns:
        Formatted string

    Example:
        >>> format_decimal(30.0)
        '30'
        >>> format_decimal(2.5)
        '2.5'
    """
    text = f"{value:.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def calculate_hls_duration(uri: str, fetcher: Optional[PlaylistFetcher] = None) -> float:
    """
    Sum the segment durations of an HLS stream.

    For a multivariant playlist the first variant is measured.

    Args:
        uri: URL to a multivariant or media playlist
        fetcher: Optional PlaylistFetcher (default: a new one with its own session)

    Returns:
        Total duration in seconds

    Raises:
        PlaylistFetchError: If a playlist cannot be fetched
        PlaylistParseError: If a playlist cannot be parsed
    """
    fetcher = fetcher or PlaylistFetcher()
    uris, _ = fetcher.fetch_multivariant(uri)
    media_uri = next(iter(uris.video.values()))

    result = fetcher.fetch(media_uri)
    duration = sum(seg.duration or 0.0 for seg in result.playlist.segments)

    logger.info(f"Measured {len(result.playlist.segments)} segments, {duration:.3f}s in {media_uri}")
    return duration
