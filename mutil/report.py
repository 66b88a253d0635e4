"""
Daily listening report.

Aggregates scrobs into per-album tallies and renders a short text summary.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import AlbumTally, ScrobRecord

DURATION_UNITS = (
    ("day", 60 * 60 * 24),
    ("hour", 60 * 60),
    ("minute", 60),
    ("second", 1),
)


def start_of_day(moment: datetime) -> datetime:
    """Local midnight of the day containing moment."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def format_duration(seconds: int) -> str:
    """
    Format a number of seconds, e.g. "1 day, 2 hours, 5 seconds".

    Zero-valued units are left out, so 0 seconds formats as "".
    """
    parts = []
    remaining = seconds
    for name, size in DURATION_UNITS:
        value, remaining = divmod(remaining, size)
        if value:
            parts.append(f"{value} {name}{'s' if value > 1 else ''}")
    return ", ".join(parts)


def tally_albums(records: Iterable[ScrobRecord]) -> List[AlbumTally]:
    """Group scrobs by album and album artist, in first-seen order."""
    tallies: Dict[Tuple[str, str], AlbumTally] = {}
    for record in records:
        key = (record.album, record.album_artist)
        tally = tallies.get(key)
        if tally is None:
            tally = tallies[key] = AlbumTally(label=f"{record.album} - {record.album_artist}")
        tally.plays += 1
        tally.duration_seconds += record.duration_seconds
    return list(tallies.values())


def top_albums(tallies: Sequence[AlbumTally], limit: int = 5) -> List[AlbumTally]:
    """Most played albums first; ties keep their first-seen order."""
    return sorted(tallies, key=lambda tally: tally.plays, reverse=True)[:limit]


def daily_summary(records: Sequence[ScrobRecord], limit: int = 5) -> str:
    """Render the report printed by `mutil report-today`."""
    total_seconds = sum(record.duration_seconds for record in records)
    ranked = top_albums(tally_albums(records), limit)

    lines = [
        f"You've scrobbled {len(records)} times today.",
        f"Total listen time: {format_duration(total_seconds)}",
        "",
        "Top Albums:",
    ]
    lines.extend(f"{tally.plays}\t{tally.label}" for tally in ranked)
    return "\n".join(lines)
