from datetime import datetime, timezone

import m3u8

from hlsrecorder.segment import playlist_item_to_segment, resolve_uri

PLAYLIST_URL = "https://cdn.example.com/live/level_0.m3u8"


def parse(body):
    return m3u8.loads("#EXTM3U\n#EXT-X-TARGETDURATION:10\n" + body, uri=PLAYLIST_URL)


def test_resolve_uri():
    assert resolve_uri(PLAYLIST_URL, "seg_1.ts") == "https://cdn.example.com/live/seg_1.ts"
    assert resolve_uri(PLAYLIST_URL, "/other/seg_1.ts") == "https://cdn.example.com/other/seg_1.ts"
    assert resolve_uri(PLAYLIST_URL, "https://other.example.com/seg.ts") == "https://other.example.com/seg.ts"
    assert resolve_uri(None, "seg_1.ts") == "seg_1.ts"
    assert resolve_uri(PLAYLIST_URL, None) is None


def test_plain_segment():
    playlist = parse("#EXTINF:9.6,\nseg_0.ts\n")

    seg = playlist_item_to_segment(playlist.segments[0], 7, base_url=PLAYLIST_URL)

    assert seg.index == 7
    assert seg.duration == 9.6
    assert seg.uri == "https://cdn.example.com/live/seg_0.ts"
    assert not seg.discontinuity
    assert seg.key is None
    assert seg.map is None
    assert seg.cue is None
    assert seg.program_date_time is None
    assert seg.dateranges == ()
    assert not seg.endlist


def test_discontinuity_key_and_map():
    playlist = parse(
        '#EXT-X-MAP:URI="init.mp4"\n'
        '#EXT-X-KEY:METHOD=AES-128,URI="keys/1.key",IV=0x1234\n'
        "#EXTINF:10,\nseg_0.m4s\n"
        "#EXT-X-DISCONTINUITY\n"
        "#EXTINF:10,\nseg_1.m4s\n"
    )

    first = playlist_item_to_segment(playlist.segments[0], 1, base_url=PLAYLIST_URL)
    second = playlist_item_to_segment(playlist.segments[1], 2, base_url=PLAYLIST_URL)

    assert not first.discontinuity
    assert second.discontinuity
    assert first.map.uri == "https://cdn.example.com/live/init.mp4"
    assert first.key.method == "AES-128"
    assert first.key.uri == "https://cdn.example.com/live/keys/1.key"
    assert first.key.iv == "0x1234"
    assert second.key == first.key


def test_method_none_key_is_dropped():
    playlist = parse("#EXT-X-KEY:METHOD=NONE\n#EXTINF:10,\nseg_0.ts\n")

    seg = playlist_item_to_segment(playlist.segments[0], 1, base_url=PLAYLIST_URL)

    assert seg.key is None


def test_program_date_time():
    playlist = parse("#EXT-X-PROGRAM-DATE-TIME:2024-01-01T12:00:00.000Z\n#EXTINF:10,\nseg_0.ts\n")

    seg = playlist_item_to_segment(playlist.segments[0], 1, base_url=PLAYLIST_URL)

    assert seg.program_date_time == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_cue_out_and_cue_in():
    playlist = parse(
        "#EXT-X-CUE-OUT:DURATION=30\n"
        "#EXTINF:10,\nseg_0.ts\n"
        "#EXT-X-CUE-OUT-CONT:ElapsedTime=10,Duration=30,SCTE35=/DAlAAAA\n"
        "#EXTINF:10,\nseg_1.ts\n"
        "#EXT-X-CUE-IN\n"
        "#EXTINF:10,\nseg_2.ts\n"
    )

    cue_out, cont, cue_in = (playlist_item_to_segment(item, i, PLAYLIST_URL)
                             for i, item in enumerate(playlist.segments, start=1))

    assert cue_out.cue.cue_out
    assert cue_out.cue.duration == 30.0
    assert not cue_out.cue.cont

    assert cont.cue.cont
    assert not cont.cue.cue_out
    assert cont.cue.elapsed == 10.0
    assert cont.cue.duration == 30.0
    assert cont.cue.scte_data == "/DAlAAAA"

    assert cue_in.cue.cue_in
    assert not cue_in.cue.cue_out


def test_daterange():
    playlist = parse(
        '#EXT-X-PROGRAM-DATE-TIME:2024-01-01T12:00:00.000Z\n'
        '#EXT-X-DATERANGE:ID="ad-1",CLASS="com.example.ad",START-DATE="2024-01-01T12:00:00.000Z",'
        'DURATION=30.000,X-COM-EXAMPLE-AD-ID="1234"\n'
        "#EXTINF:10,\nseg_0.ts\n"
    )

    seg = playlist_item_to_segment(playlist.segments[0], 1, base_url=PLAYLIST_URL)

    assert len(seg.dateranges) == 1
    daterange = seg.dateranges[0]
    assert daterange.id == "ad-1"
    assert daterange.class_name == "com.example.ad"
    assert daterange.start_date == "2024-01-01T12:00:00.000Z"
    assert daterange.duration == 30.0
    assert ("X-COM-EXAMPLE-AD-ID", '"1234"') in daterange.attributes
