"""Tests for the scrob state machine."""

import pytest

from mutil import scrobbler
from mutil.models import PlayerSnapshot, PlayerStatus, TrackIdentity

T0 = 1_700_000_000_000  # epoch milliseconds


def snapshot(title="Song", status=PlayerStatus.PLAYING, duration=200, **kwargs):
    fields = {
        "artist": "Artist",
        "album_artist": "",
        "album": "Album",
        "title": title,
        "status": status,
        "raw_status": status.value,
        "duration_seconds": duration,
    }
    fields.update(kwargs)
    return PlayerSnapshot(**fields)


def play(session, snap, start_ms, end_ms, step_ms=2000):
    """Poll snap every step_ms from start_ms (exclusive) to end_ms, return emitted records."""
    records = []
    now = start_ms
    while now < end_ms:
        now = min(now + step_ms, end_ms)
        tick = scrobbler.advance(session, snap, now)
        if tick.record is not None:
            records.append(tick.record)
            scrobbler.mark_scrobbled(session)
    return records


@pytest.fixture
def session():
    return scrobbler.new_session(T0)


def test_threshold_is_half_duration_capped_at_four_minutes():
    assert scrobbler.scrob_threshold_ms(200) == 100_000
    assert scrobbler.scrob_threshold_ms(480) == 240_000
    assert scrobbler.scrob_threshold_ms(1000) == 240_000
    assert scrobbler.scrob_threshold_ms(0) == 0


def test_first_snapshot_only_adopts_identity(session):
    tick = scrobbler.advance(session, snapshot(), T0 + 2000)

    assert tick.track_changed is True
    assert tick.record is None
    assert session.current_identity == TrackIdentity("Artist", "Album", "Song")
    assert session.accumulated_play_ms == 0
    assert session.last_poll_ms == T0 + 2000


def test_emits_exactly_once_past_threshold(session):
    snap = snapshot(duration=200)
    scrobbler.advance(session, snap, T0)

    tick = scrobbler.advance(session, snap, T0 + 100_000)
    assert session.accumulated_play_ms == 100_000
    assert tick.record is None

    tick = scrobbler.advance(session, snap, T0 + 100_001)
    assert session.accumulated_play_ms == 100_001
    assert tick.record is not None
    assert tick.record.at == (T0 + 100_001) // 1000
    scrobbler.mark_scrobbled(session)

    records = play(session, snap, T0 + 100_001, T0 + 400_000)
    assert records == []


def test_long_run_emits_at_most_once(session):
    snap = snapshot(duration=300)
    scrobbler.advance(session, snap, T0)

    records = play(session, snap, T0, T0 + 3_600_000)

    assert len(records) == 1


def test_zero_duration_qualifies_on_any_play_time(session):
    snap = snapshot(duration=0)
    scrobbler.advance(session, snap, T0)

    tick = scrobbler.advance(session, snap, T0 + 1)

    assert tick.threshold_ms == 0
    assert tick.record is not None
    assert tick.record.duration_seconds == 0


def test_zero_duration_needs_positive_play_time(session):
    snap = snapshot(duration=0)
    scrobbler.advance(session, snap, T0)

    tick = scrobbler.advance(session, snap, T0)

    assert tick.record is None


def test_track_change_resets_and_abandons_play(session):
    first = snapshot(title="First", duration=200)
    second = snapshot(title="Second", duration=200)
    scrobbler.advance(session, first, T0)
    play(session, first, T0, T0 + 90_000)
    assert session.accumulated_play_ms == 90_000

    tick = scrobbler.advance(session, second, T0 + 92_000)
    assert tick.track_changed is True
    assert tick.record is None
    assert session.accumulated_play_ms == 0
    assert session.scrobbled is False

    # Coming back to the first track starts again from zero
    scrobbler.advance(session, first, T0 + 94_000)
    assert session.accumulated_play_ms == 0
    records = play(session, first, T0 + 94_000, T0 + 94_000 + 90_000)
    assert records == []
    assert session.accumulated_play_ms == 90_000


def test_replay_after_scrob_is_a_new_play(session):
    first = snapshot(title="First", duration=10)
    second = snapshot(title="Second", duration=10)
    scrobbler.advance(session, first, T0)
    assert len(play(session, first, T0, T0 + 10_000)) == 1

    scrobbler.advance(session, second, T0 + 12_000)
    scrobbler.advance(session, first, T0 + 14_000)

    assert session.scrobbled is False
    assert len(play(session, first, T0 + 14_000, T0 + 24_000)) == 1


def test_pause_freezes_accumulation(session):
    playing = snapshot(duration=200)
    paused = snapshot(duration=200, status=PlayerStatus.PAUSED)
    scrobbler.advance(session, playing, T0)
    play(session, playing, T0, T0 + 60_000)

    for now in range(T0 + 62_000, T0 + 600_000, 2000):
        tick = scrobbler.advance(session, paused, now)
        assert tick.record is None
        assert tick.track_changed is False
    assert session.accumulated_play_ms == 60_000

    # Resuming continues from the frozen value, the pause is not counted
    tick = scrobbler.advance(session, playing, T0 + 600_000)
    assert session.accumulated_play_ms == 60_000 + 2000
    assert tick.record is None


def test_stopped_and_unknown_do_not_accumulate(session):
    scrobbler.advance(session, snapshot(status=PlayerStatus.STOPPED), T0)
    scrobbler.advance(session, snapshot(status=PlayerStatus.STOPPED), T0 + 2000)
    scrobbler.advance(session, snapshot(status=PlayerStatus.UNKNOWN), T0 + 4000)

    assert session.accumulated_play_ms == 0


def test_clock_going_backwards_adds_nothing(session):
    snap = snapshot()
    scrobbler.advance(session, snap, T0)
    scrobbler.advance(session, snap, T0 - 5000)

    assert session.accumulated_play_ms == 0
    assert session.last_poll_ms == T0 - 5000


def test_unmarked_session_requalifies_next_tick(session):
    snap = snapshot(duration=10)
    scrobbler.advance(session, snap, T0)

    first = scrobbler.advance(session, snap, T0 + 6000)
    assert first.record is not None
    # Not marked (e.g. the write failed): the next poll tries again
    second = scrobbler.advance(session, snap, T0 + 8000)
    assert second.record is not None


def test_identity_uses_album_artist_first():
    snap = snapshot(artist="Track Artist", album_artist="Album Artist")
    assert snap.identity.artist == "Album Artist"
    assert snap.identity.key == "Album Artist::Album::Song"

    snap = snapshot(artist="Track Artist", album_artist="")
    assert snap.identity.key == "Track Artist::Album::Song"


def test_identity_is_case_sensitive(session):
    scrobbler.advance(session, snapshot(title="song"), T0)
    tick = scrobbler.advance(session, snapshot(title="Song"), T0 + 2000)

    assert tick.track_changed is True


def test_record_fields(session):
    snap = snapshot(
        artist="Track Artist",
        album_artist="Album Artist",
        duration=4,
        musicbrainz_trackid="mbid-1",
    )
    scrobbler.advance(session, snap, T0)
    tick = scrobbler.advance(session, snap, T0 + 2001)

    record = tick.record
    assert record.album_artist == "Album Artist"
    assert record.album == "Album"
    assert record.title == "Song"
    assert record.duration_seconds == 4
    assert record.musicbrainz_trackid == "mbid-1"
    assert record.id is None


def test_malformed_snapshot_is_processed(session):
    empty = PlayerSnapshot()
    tick = scrobbler.advance(session, empty, T0)

    assert tick.track_changed is True
    assert tick.status_line == "⏸   -  | 0%"


def test_status_line_progress(session):
    snap = snapshot(duration=200)
    scrobbler.advance(session, snap, T0)
    tick = scrobbler.advance(session, snap, T0 + 50_000)

    assert tick.status_line == "▶️ Artist - Song | 50%"

    paused = scrobbler.advance(session, snapshot(duration=200, status=PlayerStatus.PAUSED), T0 + 52_000)
    assert paused.status_line == "⏸  Artist - Song | 50%"


def test_status_line_after_scrob(session):
    snap = snapshot(duration=200)
    scrobbler.advance(session, snap, T0)
    scrobbler.advance(session, snap, T0 + 100_001)
    scrobbler.mark_scrobbled(session)

    assert scrobbler.render_status_line(session, snap) == "▶️ Artist - Song | ✓"


@pytest.mark.parametrize(
    "accumulated, threshold, expected",
    [
        (0, 0, 0),
        (1, 0, 100),
        (0, 100_000, 0),
        (99_999, 100_000, 99),
        (150_000, 100_000, 150),
    ],
)
def test_progress_percent(accumulated, threshold, expected):
    assert scrobbler.progress_percent(accumulated, threshold) == expected
