class HLSRecorderError(Exception):
    """Base class for all hlsrecorder errors."""

    pass


class InvalidSourceError(HLSRecorderError, ValueError):
    """The recorder source is not a recognizable playlist URL."""

    pass


class PlaylistFetchError(HLSRecorderError):
    """A playlist request timed out, failed in transport or returned non-2xx."""

    pass


class PlaylistParseError(HLSRecorderError):
    """Playlist text could not be parsed."""

    pass
