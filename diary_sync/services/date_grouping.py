"""Groups notes into display-date buckets and formats note timestamps.

Labels are computed from the calendar day of ``createdAt`` in the active time
zone: "Today", "Yesterday", otherwise "DD Mon". Group order is Today,
Yesterday, then the remaining labels in descending string order, which only
approximates chronological order (for example "10 Aug" sorts before
"09 Sep").
"""
from datetime import datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional

from diary_sync.models.note import Note

TODAY = "Today"
YESTERDAY = "Yesterday"


def _local(timestamp_ms: int, tz: Optional[tzinfo]) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)


def _now(now: Optional[datetime], tz: Optional[tzinfo]) -> datetime:
    if now is None:
        return datetime.now(tz=tz)
    if now.tzinfo is None:
        return now
    # tz=None means system local time, the zone note timestamps are read in
    return now.astimezone(tz)


def date_group_label(timestamp_ms: int, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    day = _local(timestamp_ms, tz).date()
    today = _now(now, tz).date()
    if day == today:
        return TODAY
    if day == today - timedelta(days=1):
        return YESTERDAY
    return day.strftime("%d %b")


def _group_order(label: str):
    if label == TODAY:
        return (0, "")
    if label == YESTERDAY:
        return (1, "")
    return (2, label)


def group_notes(
    notes: Iterable[Note], now: Optional[datetime] = None, tz: Optional[tzinfo] = None
) -> Dict[str, List[Note]]:
    """Return an ordered mapping of date label to notes, newest first.

    Pure: the same notes, ``now`` and ``tz`` always give the same result.
    Notes with equal ``createdAt`` keep their input order.
    """
    today_now = _now(now, tz)
    buckets: Dict[str, List[Note]] = {}
    for note in sorted(notes, key=lambda n: n.createdAt, reverse=True):
        label = date_group_label(note.createdAt, now=today_now, tz=tz)
        buckets.setdefault(label, []).append(note)

    special = sorted((label for label in buckets if label in (TODAY, YESTERDAY)), key=_group_order)
    others = sorted((label for label in buckets if label not in (TODAY, YESTERDAY)), reverse=True)
    return {label: buckets[label] for label in special + others}


def flatten_groups(groups: Dict[str, List[Note]]) -> List[Note]:
    return [note for bucket in groups.values() for note in bucket]


def format_time(timestamp_ms: int, tz: Optional[tzinfo] = None) -> str:
    return _local(timestamp_ms, tz).strftime("%I:%M %p")


def format_date(timestamp_ms: int, tz: Optional[tzinfo] = None) -> str:
    return _local(timestamp_ms, tz).strftime("%d %b %Y")


def format_detail_date(timestamp_ms: int, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    """e.g. "Today, 11:23 AM" or "05 Aug 2025, 09:00 PM"."""
    label = date_group_label(timestamp_ms, now=now, tz=tz)
    day = label if label in (TODAY, YESTERDAY) else format_date(timestamp_ms, tz)
    return f"{day}, {format_time(timestamp_ms, tz)}"


def relative_time(timestamp_ms: int, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    now_ms = int(_now(now, tz).timestamp() * 1000)
    diff = now_ms - timestamp_ms
    minutes = diff // (60 * 1000)
    hours = diff // (60 * 60 * 1000)
    days = diff // (24 * 60 * 60 * 1000)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return YESTERDAY
    if days < 7:
        return f"{days}d ago"
    return format_date(timestamp_ms, tz)
