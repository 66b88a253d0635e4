"""
Scrob detection.

Turns a stream of player snapshots into at most one ScrobRecord per play.

A play is scrob-eligible once it has been heard for half of the track or four
minutes, whichever comes first. Only time spent in the playing state between two
polls of the same track counts. A track change throws away the accumulated time,
even if the same track comes back later.
"""

from typing import Optional

from .models import PlayerSnapshot, PlayerStatus, ScrobRecord, ScrobSession, Tick

MAX_SCROB_THRESHOLD_MS = 240_000

PLAYING_GLYPH = "▶️"
PAUSED_GLYPH = "⏸ "
SCROBBLED_MARK = "✓"


def scrob_threshold_ms(duration_seconds: int) -> int:
    """Play time needed before a track of this length counts as listened to.

    An unknown duration (0) gives a threshold of 0, so any play time qualifies.
    """
    return min(MAX_SCROB_THRESHOLD_MS, duration_seconds * 500)


def new_session(now_ms: int) -> ScrobSession:
    return ScrobSession(last_poll_ms=now_ms)


def progress_percent(accumulated_ms: int, threshold_ms: int) -> int:
    if threshold_ms <= 0:
        return 100 if accumulated_ms > 0 else 0
    return accumulated_ms * 100 // threshold_ms


def render_status_line(session: ScrobSession, snapshot: PlayerSnapshot) -> str:
    """Human-readable one-line summary of the current play."""
    glyph = PLAYING_GLYPH if snapshot.status is PlayerStatus.PLAYING else PAUSED_GLYPH
    if session.scrobbled:
        progress = SCROBBLED_MARK
    else:
        threshold = scrob_threshold_ms(snapshot.duration_seconds)
        progress = f"{progress_percent(session.accumulated_play_ms, threshold)}%"
    return f"{glyph} {snapshot.display_artist} - {snapshot.title} | {progress}"


def build_record(snapshot: PlayerSnapshot, now_ms: int) -> ScrobRecord:
    return ScrobRecord(
        album_artist=snapshot.display_artist,
        album=snapshot.album,
        title=snapshot.title,
        duration_seconds=snapshot.duration_seconds,
        musicbrainz_trackid=snapshot.musicbrainz_trackid,
        at=now_ms // 1000,
    )


def advance(session: ScrobSession, snapshot: PlayerSnapshot, now_ms: int) -> Tick:
    """
    Feed one snapshot to the session.

    The returned Tick carries the record to persist, if this poll made the
    play qualify. The session is not marked as scrobbled here: the caller
    does that with mark_scrobbled() once the record has been stored, so a
    failed write is retried on the next poll instead of being lost.

    Args:
        session: Session to update in place
        snapshot: Current player status
        now_ms: Current time in epoch milliseconds

    Returns:
        Tick for this poll
    """
    identity = snapshot.identity
    threshold = scrob_threshold_ms(snapshot.duration_seconds)
    record: Optional[ScrobRecord] = None
    track_changed = False

    if identity == session.current_identity and snapshot.status is PlayerStatus.PLAYING:
        session.accumulated_play_ms += max(0, now_ms - session.last_poll_ms)

        played = session.accumulated_play_ms
        if not session.scrobbled and (played > MAX_SCROB_THRESHOLD_MS or played > threshold):
            record = build_record(snapshot, now_ms)
    elif identity != session.current_identity:
        session.current_identity = identity
        session.accumulated_play_ms = 0
        session.scrobbled = False
        track_changed = True
    # Same track, not playing: accumulation stays frozen

    session.last_poll_ms = now_ms

    return Tick(
        session=session,
        threshold_ms=threshold,
        status_line=render_status_line(session, snapshot),
        record=record,
        track_changed=track_changed,
    )


def mark_scrobbled(session: ScrobSession):
    """Record that the current play has been persisted."""
    session.scrobbled = True
