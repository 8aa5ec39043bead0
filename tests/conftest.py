import pytest
import requests

BASE_URL = "https://mock.mock.com/live/"
MASTER_URL = BASE_URL + "master.m3u8"
BANDWIDTHS = (500500, 700700)


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Stands in for requests.Session; routes map URLs to text, callables or exceptions."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404)
        if callable(route):
            route = route(url)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(200, route)


class FlakyRoute:
    """Fails the first `failures` calls, then delegates to `route`."""

    def __init__(self, route, failures, error=None):
        self.route = route
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self, url):
        self.calls += 1
        if self.calls <= self.failures:
            return self.error or requests.ConnectionError("connection reset")
        return self.route(url) if callable(self.route) else self.route


class MockLivePlaylist:
    """
    Generates a media playlist that moves on every request.

    Each call renders the current window, then drops `shift` segments from the
    front and publishes `push` new ones, unless the call number is in hold_on.
    With endlist_at set, rendering stops before that segment and an endlist is
    written instead.
    """

    def __init__(self, name, playlist_type="LIVE", start=0, end=6, media_sequence=0, target_duration=10,
                 shift=1, push=1, endlist_at=None, hold_on=(), key_line=None, map_line=None,
                 discontinuity_at=None, skip_calls=0):
        self.name = name
        self.playlist_type = playlist_type
        self.start = start
        self.end = end
        self.media_sequence = media_sequence
        self.target_duration = target_duration
        self.shift = shift
        self.push = push
        self.endlist_at = endlist_at
        self.hold_on = set(hold_on)
        self.key_line = key_line
        self.map_line = map_line
        self.discontinuity_at = discontinuity_at
        self.skip_calls = skip_calls
        self.calls = 0

    def render(self):
        lines = ["#EXTM3U", "#EXT-X-VERSION:7"]
        if self.playlist_type == "EVENT":
            lines.append("#EXT-X-PLAYLIST-TYPE:EVENT")
        lines.append(f"#EXT-X-TARGETDURATION:{self.target_duration}")
        lines.append("#EXT-X-DISCONTINUITY-SEQUENCE:0")
        lines.append(f"#EXT-X-MEDIA-SEQUENCE:{self.media_sequence}")
        if self.map_line:
            lines.append(self.map_line)
        if self.key_line:
            lines.append(self.key_line)
        extension = "m4s" if self.map_line else "ts"
        for i in range(self.start, self.end):
            if self.endlist_at == i:
                lines.append("#EXT-X-ENDLIST")
                break
            if self.discontinuity_at == i:
                lines.append("#EXT-X-DISCONTINUITY")
            lines.append(f"#EXTINF:{self.target_duration:.3f},")
            lines.append(f"{self.name}-seg_{i}.{extension}")
        return "\n".join(lines) + "\n"

    def __call__(self, url=None):
        self.calls += 1
        text = self.render()
        if self.calls > self.skip_calls and self.calls not in self.hold_on:
            self.start += self.shift
            self.media_sequence += self.shift
            self.end += self.push
        return text


def build_multivariant(bandwidths=BANDWIDTHS, audio=(), subtitles=()):
    """Multivariant text with level_<n>.m3u8 variants and optional (group, language, name) renditions."""
    lines = ["#EXTM3U", "#EXT-X-VERSION:7"]
    for group, language, name in audio:
        lines.append(f'#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="{group}",LANGUAGE="{language}",NAME="{name}",'
                     f'CHANNELS="2",DEFAULT=NO,AUTOSELECT=YES,URI="audio-{group}_{language}.m3u8"')
    for group, language, name in subtitles:
        lines.append(f'#EXT-X-MEDIA:TYPE=SUBTITLES,GROUP-ID="{group}",LANGUAGE="{language}",NAME="{name}",'
                     f'FORCED=NO,DEFAULT=NO,AUTOSELECT=YES,URI="sub-{group}_{language}.m3u8"')
    for n, bandwidth in enumerate(bandwidths):
        attributes = f'BANDWIDTH={bandwidth},RESOLUTION=640x266,CODECS="avc1.42c00c"'
        if audio:
            attributes += f',AUDIO="{audio[0][0]}"'
        if subtitles:
            attributes += f',SUBTITLES="{subtitles[0][0]}"'
        lines.append(f"#EXT-X-STREAM-INF:{attributes}")
        lines.append(f"level_{n}.m3u8")
    return "\n".join(lines) + "\n"


def live_routes(**options):
    """Routes for the master and one MockLivePlaylist per bandwidth; options are passed to each playlist."""
    routes = {MASTER_URL: build_multivariant()}
    playlists = {}
    for n, bandwidth in enumerate(BANDWIDTHS):
        per_track = {key: value[bandwidth] if isinstance(value, dict) else value for key, value in options.items()}
        playlists[bandwidth] = MockLivePlaylist(f"video-{bandwidth}", **per_track)
        routes[f"{BASE_URL}level_{n}.m3u8"] = playlists[bandwidth]
    return routes, playlists


def no_wait(recorder):
    recorder._timer = lambda seconds: None
    return recorder


@pytest.fixture
def collect_events():
    events = []

    def collect(event):
        events.append(event)

    collect.events = events
    return collect
