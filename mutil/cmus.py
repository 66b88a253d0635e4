"""
cmus status source.

Talks to a running cmus over its control socket and parses the reply of the
`status` command into a PlayerSnapshot.
"""

import logging
import socket
from typing import List

from .errors import SourceUnavailable
from .models import PlayerSnapshot, PlayerStatus

logger = logging.getLogger(__name__)

# `tag <name> ...` lines we keep, mapped to PlayerSnapshot fields
TAG_FIELDS = {
    "artist": "artist",
    "albumartist": "album_artist",
    "album": "album",
    "title": "title",
    "musicbrainz_trackid": "musicbrainz_trackid",
}


def _to_seconds(value: str) -> int:
    return max(0, int(value))


def parse_status(text: str) -> PlayerSnapshot:
    """
    Parse the reply of cmus' `status` command.

    Unknown keys, unknown tags and unparseable numbers are skipped and the
    corresponding fields keep their defaults.

    Args:
        text: Raw reply, one `key value...` pair per line

    Returns:
        PlayerSnapshot
    """
    snapshot = PlayerSnapshot()

    for line in text.splitlines():
        key, _, rest = line.partition(" ")
        if key == "status":
            snapshot.raw_status = rest.split(" ", 1)[0]
            snapshot.status = PlayerStatus.from_token(snapshot.raw_status)
        elif key in ("duration", "position"):
            try:
                seconds = _to_seconds(rest.strip())
            except ValueError:
                logger.debug("Ignoring unparseable %s: %r", key, rest)
                continue
            if key == "duration":
                snapshot.duration_seconds = seconds
            else:
                snapshot.position_seconds = seconds
        elif key == "tag":
            name, _, value = rest.partition(" ")
            field_name = TAG_FIELDS.get(name)
            if field_name:
                setattr(snapshot, field_name, value)

    if not snapshot.musicbrainz_trackid:
        snapshot.musicbrainz_trackid = None

    return snapshot


class CmusClient:
    """Requests the player status from cmus over its unix socket."""

    STATUS_COMMAND = "status"

    def __init__(self, socket_path: str, timeout: float = 5.0):
        """
        Initialize CmusClient.

        Args:
            socket_path: Path of the cmus control socket
            timeout: Seconds to wait for connecting and for each read
        """
        self.socket_path = socket_path
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def send_command(self, command: str) -> str:
        """
        Send one command and return the raw reply.

        The reply ends when cmus closes the stream or sends its blank
        terminator line.

        Raises:
            SourceUnavailable: if the socket cannot be reached or the reply is empty
        """
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self.socket_path)
            sock.sendall(command.encode("utf-8") + b"\n")
            chunks: List[bytes] = []
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
                if b"".join(chunks).endswith(b"\n\n"):
                    break
        except OSError as e:
            raise SourceUnavailable(f"cmus socket {self.socket_path}: {e}") from e
        finally:
            sock.close()

        if not chunks:
            raise SourceUnavailable(f"cmus closed {self.socket_path} without a reply")

        return b"".join(chunks).decode("utf-8", errors="replace")

    def fetch_status(self) -> PlayerSnapshot:
        """
        Get the current player status.

        Raises:
            SourceUnavailable: if cmus cannot be reached
        """
        raw = self.send_command(self.STATUS_COMMAND)
        snapshot = parse_status(raw)
        self.logger.debug(
            "Parsed: status=%s artist=%s title=%s album=%s position=%s duration=%s",
            snapshot.raw_status,
            snapshot.display_artist,
            snapshot.title,
            snapshot.album,
            snapshot.position_seconds,
            snapshot.duration_seconds,
        )
        return snapshot
