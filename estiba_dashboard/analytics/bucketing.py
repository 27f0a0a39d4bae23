from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Dict, Iterable, List, Set
from estiba_dashboard.analytics.normalize import NormalizedEvent
from estiba_dashboard.models.dashboard import ActivityPoint

HOUR_LABEL_FORMAT = "%H:%M"
DAY_LABEL_FORMAT = "%d/%m"


@dataclass
class TimeBucket:
    sort_key: int
    label: str
    unique_users: Set[str] = field(default_factory=set)
    view_count: int = 0

    def add(self, event: NormalizedEvent):
        self.view_count += 1
        if not event.is_anonymous:
            self.unique_users.add(event.user_id)


def truncate(ts: datetime, fine_grained: bool, tz: tzinfo) -> datetime:
    local = ts.astimezone(tz)
    if fine_grained:
        return local.replace(minute=0, second=0, microsecond=0)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def bucket_events(events: Iterable[NormalizedEvent], fine_grained: bool, tz: tzinfo) -> List[TimeBucket]:
    """Group events by the hour (``fine_grained``) or the day they happened in ``tz``.

    Buckets come back oldest first, labelled ``HH:MM`` or ``DD/MM``.
    """
    buckets: Dict[int, TimeBucket] = {}
    label_format = HOUR_LABEL_FORMAT if fine_grained else DAY_LABEL_FORMAT

    for event in events:
        start = truncate(event.created_at, fine_grained, tz)
        sort_key = int(start.timestamp() * 1000)
        bucket = buckets.get(sort_key)
        if bucket is None:
            bucket = buckets[sort_key] = TimeBucket(sort_key=sort_key, label=start.strftime(label_format))
        bucket.add(event)

    return sorted(buckets.values(), key=lambda b: b.sort_key)


def activity_series(buckets: Iterable[TimeBucket]) -> List[ActivityPoint]:
    return [
        ActivityPoint(name=b.label, usuarios=len(b.unique_users), vistas=b.view_count)
        for b in buckets
    ]
