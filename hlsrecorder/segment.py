"""
Segment normalization for hlsrecorder.

Converts segments parsed by the m3u8 library into canonical Segment records:
URIs are made absolute against the playlist URL, and each marker (key, map,
cue, daterange, program date time) is populated only when the source carries it.
"""

import logging
from typing import Any, Optional, Tuple
from urllib.parse import urljoin

from .models import Cue, DateRange, Segment, SegmentKey, SegmentMap

logger = logging.getLogger(__name__)

# DateRange attributes carried as (NAME, value) pairs next to x_client_attrs
_DATERANGE_EXTRAS = ("scte35_cmd", "scte35_out", "scte35_in", "end_on_next")


def resolve_uri(base_url: Optional[str], uri: Optional[str]) -> Optional[str]:
    """
    Resolve a possibly relative URI against a base URL.

    Args:
        base_url: URL of the playlist the URI appeared in
        uri: Absolute or relative URI

    Returns:
        Absolute URI, or None if uri is empty

    Example:
        >>> resolve_uri("https://cdn.example.com/live/level_0.m3u8", "seg_1.ts")
        'https://cdn.example.com/live/seg_1.ts'
    """
    if not uri:
        return None
    if not base_url:
        return uri
    return urljoin(base_url, uri)


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric value: {value!r}")
        return None


def _attribute_name(name: str) -> str:
    return name.replace("_", "-").upper()


def key_from_item(key: Any, base_url: Optional[str]) -> Optional[SegmentKey]:
    if key is None or not key.method or key.method.upper() == "NONE":
        return None
    return SegmentKey(
        method=key.method,
        uri=resolve_uri(base_url, key.uri),
        iv=key.iv,
        key_format=key.keyformat,
        key_format_versions=key.keyformatversions,
    )


def map_from_item(init_section: Any, base_url: Optional[str]) -> Optional[SegmentMap]:
    if init_section is None or not init_section.uri:
        return None
    return SegmentMap(
        uri=resolve_uri(base_url, init_section.uri),
        byterange=init_section.byterange,
    )


def daterange_from_item(daterange: Any) -> DateRange:
    attributes = []
    for name in _DATERANGE_EXTRAS:
        value = getattr(daterange, name, None)
        if value is not None:
            attributes.append((_attribute_name(name), str(value)))
    for name, value in getattr(daterange, "x_client_attrs", None) or []:
        attributes.append((_attribute_name(name), str(value)))

    return DateRange(
        id=daterange.id,
        start_date=daterange.start_date,
        end_date=getattr(daterange, "end_date", None),
        class_name=getattr(daterange, "class_", None),
        duration=_to_float(getattr(daterange, "duration", None)),
        planned_duration=_to_float(getattr(daterange, "planned_duration", None)),
        attributes=tuple(attributes),
    )


def cue_from_item(item: Any) -> Optional[Cue]:
    """
    Build a Cue from the ad-marker state of a parsed segment.

    Args:
        item: m3u8.Segment

    Returns:
        Cue, or None if the segment carries no ad marker
    """
    cue_in = bool(getattr(item, "cue_in", False))
    cue_out = bool(getattr(item, "cue_out_start", False))
    cont = bool(getattr(item, "cue_out", False)) and not cue_out
    asset_metadata = getattr(item, "asset_metadata", None)

    if not (cue_in or cue_out or cont or asset_metadata):
        return None

    asset_data = None
    if asset_metadata:
        asset_data = ",".join(f"{_attribute_name(name)}={value}" for name, value in asset_metadata.items())

    return Cue(
        cue_out=cue_out,
        cue_in=cue_in,
        cont=cont,
        elapsed=_to_float(getattr(item, "scte35_elapsedtime", None)) if cont else None,
        duration=_to_float(getattr(item, "scte35_duration", None)),
        scte_data=getattr(item, "oatcls_scte35", None) or getattr(item, "scte35", None),
        asset_data=asset_data,
    )


def playlist_item_to_segment(item: Any, index: int, base_url: Optional[str] = None) -> Segment:
    """
    Normalize one parsed playlist entry into a Segment.

    Args:
        item: m3u8.Segment from a parsed media playlist
        index: Recorder-assigned index for this entry
        base_url: URL of the media playlist, used to resolve relative URIs

    Returns:
        Canonical Segment record

    Example:
        >>> playlist = m3u8.loads("#EXTM3U\\n#EXTINF:10,\\nseg_0.ts\\n")
        >>> playlist_item_to_segment(playlist.segments[0], 1, "https://cdn/live/a.m3u8").uri
        'https://cdn/live/seg_0.ts'
    """
    dateranges: Tuple[DateRange, ...] = tuple(
        daterange_from_item(daterange) for daterange in (getattr(item, "dateranges", None) or [])
    )

    return Segment(
        index=index,
        duration=item.duration,
        uri=resolve_uri(base_url, item.uri),
        discontinuity=bool(item.discontinuity),
        key=key_from_item(item.key, base_url),
        map=map_from_item(getattr(item, "init_section", None), base_url),
        program_date_time=getattr(item, "program_date_time", None),
        dateranges=dateranges,
        cue=cue_from_item(item),
    )
