"""
Data models for mutil.

Defines typed dataclasses for player snapshots, scrob sessions and persisted scrobs.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class PlayerStatus(Enum):
    """Playback status reported by the player."""

    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    UNKNOWN = "unknown"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "PlayerStatus":
        """Map a raw status token to a PlayerStatus, falling back to UNKNOWN."""
        for status in cls:
            if status.value == token:
                return status
        return cls.UNKNOWN


@dataclass(frozen=True)
class TrackIdentity:
    """Equality key deciding whether two snapshots belong to the same play."""

    artist: str
    album: str
    title: str

    @property
    def key(self) -> str:
        return "::".join((self.artist, self.album, self.title))

    def __str__(self) -> str:
        return self.key


@dataclass
class PlayerSnapshot:
    """One point-in-time read of the player status and track tags."""

    status: PlayerStatus = PlayerStatus.UNKNOWN
    raw_status: str = ""
    artist: str = ""
    album_artist: str = ""
    album: str = ""
    title: str = ""
    duration_seconds: int = 0
    position_seconds: int = 0
    musicbrainz_trackid: Optional[str] = None

    @property
    def display_artist(self) -> str:
        """Album artist, or the track artist when the album artist tag is empty."""
        return self.album_artist or self.artist

    @property
    def identity(self) -> TrackIdentity:
        return TrackIdentity(artist=self.display_artist, album=self.album, title=self.title)


@dataclass
class ScrobSession:
    """Rolling state of the current play, owned by the poll loop."""

    last_poll_ms: int
    current_identity: Optional[TrackIdentity] = None
    accumulated_play_ms: int = 0
    scrobbled: bool = False


@dataclass(frozen=True)
class ScrobRecord:
    """A persisted listening event."""

    album_artist: str
    album: str
    title: str
    at: int  # Unix timestamp (seconds) of the moment the play qualified
    duration_seconds: int = 0
    musicbrainz_trackid: Optional[str] = None
    id: Optional[int] = None

    @property
    def played_at(self) -> datetime:
        """Local datetime of the scrob."""
        return datetime.fromtimestamp(self.at)


@dataclass
class Tick:
    """Outcome of feeding one snapshot to the scrob state machine."""

    session: ScrobSession
    threshold_ms: int
    status_line: str
    record: Optional[ScrobRecord] = None  # Pending write, not yet persisted
    track_changed: bool = False


@dataclass
class AlbumTally:
    """Play count and listen time for one album."""

    label: str
    plays: int = 0
    duration_seconds: int = 0


@dataclass
class BarDatum:
    """One bar of a bar chart."""

    label: str
    value: int = 0


@dataclass
class ConfigEntry:
    """Configuration entry."""

    key: str
    value: str
    updated_at: Optional[datetime] = None
