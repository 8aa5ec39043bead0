"""
Manifest serialization for hlsrecorder.

Renders recorded tracks back into HLS media playlists, and rewrites the
source multivariant playlist so that it points at the recorder's own media
playlists. Rendering is side-effect free; a result of None means the
requested track is not ready yet.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import m3u8

from .models import PlaylistURIs, Segment, SegmentKey, SegmentMap, SegmentStore, Track
from .utils import format_decimal

logger = logging.getLogger(__name__)

PLAYLIST_VERSION = 6


def media_playlist_name(bandwidth: str) -> str:
    return f"master{bandwidth}.m3u8"


def audio_playlist_name(group: str, language: str) -> str:
    return f"master-{group}_{language}.m3u8"


def subtitle_playlist_name(group: str, language: str) -> str:
    return f"subs-{group}_{language}.m3u8"


def _quoted(value: str) -> str:
    return f'"{value}"'


def format_key(key: Optional[SegmentKey]) -> str:
    if key is None:
        return "#EXT-X-KEY:METHOD=NONE"
    attributes = [f"METHOD={key.method}"]
    if key.uri:
        attributes.append(f"URI={_quoted(key.uri)}")
    if key.iv:
        attributes.append(f"IV={key.iv}")
    if key.key_format:
        attributes.append(f"KEYFORMAT={_quoted(key.key_format)}")
    if key.key_format_versions:
        attributes.append(f"KEYFORMATVERSIONS={_quoted(key.key_format_versions)}")
    return "#EXT-X-KEY:" + ",".join(attributes)


def format_map(segment_map: SegmentMap) -> str:
    line = f"#EXT-X-MAP:URI={_quoted(segment_map.uri)}"
    if segment_map.byterange:
        line += f",BYTERANGE={_quoted(segment_map.byterange)}"
    return line


def _format_cue(segment: Segment) -> List[str]:
    cue = segment.cue
    lines = []
    if cue.cue_in:
        lines.append("#EXT-X-CUE-IN")
    if cue.cue_out:
        if cue.scte_data:
            lines.append(f"#EXT-OATCLS-SCTE35:{cue.scte_data}")
        if cue.asset_data:
            lines.append(f"#EXT-X-ASSET:{cue.asset_data}")
        if cue.duration is not None:
            lines.append(f"#EXT-X-CUE-OUT:DURATION={format_decimal(cue.duration)}")
        else:
            lines.append("#EXT-X-CUE-OUT")
    if cue.cont:
        elapsed = format_decimal(cue.elapsed or 0.0)
        duration = format_decimal(cue.duration or 0.0)
        if cue.scte_data:
            lines.append(f"#EXT-X-CUE-OUT-CONT:ElapsedTime={elapsed},Duration={duration},SCTE35={cue.scte_data}")
        else:
            lines.append(f"#EXT-X-CUE-OUT-CONT:{elapsed}/{duration}")
    return lines


def _format_dateranges(segment: Segment) -> List[str]:
    lines = []
    for daterange in segment.dateranges:
        attributes = [f"ID={_quoted(daterange.id)}"]
        if daterange.class_name:
            attributes.append(f"CLASS={_quoted(daterange.class_name)}")
        if daterange.start_date:
            attributes.append(f"START-DATE={_quoted(daterange.start_date)}")
        if daterange.end_date:
            attributes.append(f"END-DATE={_quoted(daterange.end_date)}")
        if daterange.duration is not None:
            attributes.append(f"DURATION={daterange.duration:.3f}")
        if daterange.planned_duration is not None:
            attributes.append(f"PLANNED-DURATION={daterange.planned_duration:.3f}")
        attributes.extend(f"{name}={value}" for name, value in daterange.attributes)
        lines.append("#EXT-X-DATERANGE:" + ",".join(attributes))
    return lines


def format_m3u8_from_segments(
    segments: Iterable[Segment],
    target_duration: int,
    media_sequence: int = 0,
    discontinuity_sequence: int = 0,
    independent_segments: bool = False,
    playlist_type: Optional[str] = "EVENT",
) -> str:
    """
    Format a list of segments into a media playlist.

    Marker tags of an entry are written before its EXTINF/URI pair. Keys and
    init sections are written whenever they differ from the previous entry.

    Args:
        segments: Ordered segments of one track
        target_duration: EXT-X-TARGETDURATION value
        media_sequence: EXT-X-MEDIA-SEQUENCE value
        discontinuity_sequence: EXT-X-DISCONTINUITY-SEQUENCE value (omitted when 0)
        independent_segments: Write EXT-X-INDEPENDENT-SEGMENTS
        playlist_type: EXT-X-PLAYLIST-TYPE value, or None to omit it

    Returns:
        Playlist text
    """
    content = "#EXTM3U\n"
    content += f"#EXT-X-VERSION:{PLAYLIST_VERSION}\n"
    if playlist_type:
        content += f"#EXT-X-PLAYLIST-TYPE:{playlist_type}\n"
    if independent_segments:
        content += "#EXT-X-INDEPENDENT-SEGMENTS\n"
    content += f"#EXT-X-TARGETDURATION:{target_duration}\n"
    content += f"#EXT-X-MEDIA-SEQUENCE:{media_sequence}\n"
    if discontinuity_sequence:
        content += f"#EXT-X-DISCONTINUITY-SEQUENCE:{discontinuity_sequence}\n"

    current_key: Optional[SegmentKey] = None
    current_map: Optional[SegmentMap] = None
    for seg in segments:
        if seg.endlist:
            content += "#EXT-X-ENDLIST\n"
            continue
        if seg.map is not None and seg.map != current_map:
            content += format_map(seg.map) + "\n"
            current_map = seg.map
        if seg.discontinuity:
            content += "#EXT-X-DISCONTINUITY\n"
        if seg.cue:
            for line in _format_cue(seg):
                content += line + "\n"
        if seg.program_date_time is not None:
            content += f"#EXT-X-PROGRAM-DATE-TIME:{seg.program_date_time.isoformat(timespec='milliseconds')}\n"
        for line in _format_dateranges(seg):
            content += line + "\n"
        if seg.key != current_key:
            content += format_key(seg.key) + "\n"
            current_key = seg.key
        if seg.uri:
            content += f"#EXTINF:{(seg.duration or 0.0):.3f},\n"
            content += f"{seg.uri}\n"

    return content


def _same_length(tracks: Iterable[Track]) -> bool:
    lengths = {len(track.seg_list) for track in tracks}
    return len(lengths) <= 1


def _render(track: Optional[Track], siblings: Iterable[Track], store: SegmentStore,
            playlist_type: Optional[str], label: str) -> Optional[str]:
    if track is None or not track.seg_list:
        logger.debug(f"Cannot generate manifest for {label}: no segments collected yet")
        return None
    if not _same_length(siblings):
        logger.debug(f"Cannot generate manifest for {label}: tracks are mid-ingestion")
        return None

    logger.debug(f"Generating manifest for {label} with media sequence {store.media_sequence}")
    return format_m3u8_from_segments(
        track.seg_list,
        target_duration=store.target_duration,
        media_sequence=store.media_sequence,
        discontinuity_sequence=store.discontinuity_sequence,
        independent_segments=store.independent_segments,
        playlist_type=playlist_type,
    )


def _group_tracks(tracks: Dict[Tuple[str, str], Track], group: str) -> List[Track]:
    return [track for (track_group, _), track in tracks.items() if track_group == group]


def generate_media_m3u8(bandwidth, store: SegmentStore, playlist_type: Optional[str] = "EVENT") -> Optional[str]:
    """
    Render the media playlist of one video rendition.

    Args:
        bandwidth: Bandwidth key of the video track
        store: Segment store to render from
        playlist_type: EXT-X-PLAYLIST-TYPE value, or None to omit it

    Returns:
        Playlist text, or None if not ready
    """
    if bandwidth is None:
        raise ValueError("No bandwidth provided")
    key = str(bandwidth)
    return _render(store.video.get(key), store.video.values(), store, playlist_type, f"bw={key}")


def generate_audio_m3u8(group: str, language: str, store: SegmentStore,
                        playlist_type: Optional[str] = "EVENT") -> Optional[str]:
    """Render the media playlist of one audio rendition, or None if not ready."""
    if not group or not language:
        raise ValueError("Both group id and language are required")
    track = store.audio.get((group, language))
    return _render(track, _group_tracks(store.audio, group), store, playlist_type, f"audio={group}_{language}")


def generate_subtitle_m3u8(group: str, language: str, store: SegmentStore,
                           playlist_type: Optional[str] = "EVENT") -> Optional[str]:
    """Render the media playlist of one subtitle rendition, or None if not ready."""
    if not group or not language:
        raise ValueError("Both group id and language are required")
    track = store.subtitle.get((group, language))
    return _render(track, _group_tracks(store.subtitle, group), store, playlist_type,
                   f"subtitle={group}_{language}")


def generate_multivariant_m3u8(uris: PlaylistURIs, source_text: Optional[str] = None) -> str:
    """
    Render the multivariant playlist pointing at the recorder's media playlists.

    Args:
        uris: Tracks known to the recorder
        source_text: Source multivariant playlist, or None for a bare media playlist source

    Returns:
        Multivariant playlist text
    """
    if source_text is None:
        content = "#EXTM3U\n"
        content += f"#EXT-X-VERSION:{PLAYLIST_VERSION}\n"
        for bandwidth in uris.video:
            content += f"#EXT-X-STREAM-INF:BANDWIDTH={bandwidth}\n"
            content += media_playlist_name(bandwidth) + "\n"
        return content

    playlist = m3u8.loads(source_text)
    for variant in playlist.playlists:
        variant.uri = media_playlist_name(str(variant.stream_info.bandwidth))
    for media in playlist.media:
        if not media.uri:
            continue
        language = media.language or "und"
        if media.type == "AUDIO":
            media.uri = audio_playlist_name(media.group_id, language)
        elif media.type == "SUBTITLES":
            media.uri = subtitle_playlist_name(media.group_id, language)
    return playlist.dumps()
