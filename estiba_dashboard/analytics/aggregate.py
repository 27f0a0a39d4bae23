import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, List, Optional, Sequence, Set, Tuple
from estiba_dashboard.analytics.bucketing import activity_series, bucket_events
from estiba_dashboard.analytics.lookup import Lookup
from estiba_dashboard.analytics.normalize import ANON, NormalizedEvent
from estiba_dashboard.models.dashboard import DashboardData, Kpi, RankedItem, TimelineEvent, TopUser

HOME_PATH = "/"
HOME_ALIASES = ("/", "/home", "")
ANONYMOUS_LABEL = "Anonymous"
TOP_USERS_LIMIT = 10


@dataclass
class AuxiliaryCounts:
    """Exact figures queried separately from the capped event scan.

    ``None`` means the query failed; the engine falls back to what it can
    derive locally.
    """
    total_views: Optional[int] = None
    home_views: Optional[int] = None
    total_users: Optional[int] = None
    total_premium: Optional[int] = None
    unique_user_ids: Optional[Set[str]] = None


def canonical_path(path: str) -> str:
    path = path.split("?", 1)[0]
    if path in HOME_ALIASES:
        return HOME_PATH
    return path


def _ranked(counts: Counter) -> List[Tuple[str, int]]:
    # ties ordered by identifier so equal counts render the same way every time
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def rank_pages(events: Iterable[NormalizedEvent], home_views: Optional[int] = None) -> List[RankedItem]:
    counts = Counter(canonical_path(e.path) for e in events)
    if isinstance(home_views, int):
        counts[HOME_PATH] = home_views
    return [RankedItem(name=name, value=value) for name, value in _ranked(counts)]


def rank_users(
        events: Iterable[NormalizedEvent],
        lookup: Lookup,
        limit: int = TOP_USERS_LIMIT
) -> List[TopUser]:
    counts = Counter(e.user_id for e in events if not e.is_anonymous)
    ranking = []
    for name, value in _ranked(counts)[:limit]:
        user = lookup.users_by_chapa.get(name)
        ranking.append(TopUser(
            name=name,
            value=value,
            premium=lookup.is_premium(name),
            display_name=user.name if user else None,
        ))
    return ranking


def unique_users(user_ids: Iterable[str]) -> Set[str]:
    return {u for u in user_ids if u and u != ANON}


def hours_in_range(start: Optional[datetime], now: datetime) -> int:
    if start is None:
        return 1
    return max(1, math.floor((now - start) / timedelta(hours=1)))


def hourly_stats(events: Sequence[NormalizedEvent], tz: tzinfo) -> Tuple[int, int, int]:
    """Return ``(peak unique users, peak views, sum of unique users)`` over hourly buckets."""
    buckets = bucket_events(events, fine_grained=True, tz=tz)
    if not buckets:
        return 0, 0, 0
    per_hour_users = [len(b.unique_users) for b in buckets]
    return max(per_hour_users), max(b.view_count for b in buckets), sum(per_hour_users)


def build_timeline(
        events: Iterable[NormalizedEvent],
        lookup: Lookup,
        now: datetime,
        hours: int = 24
) -> List[TimelineEvent]:
    threshold = now - timedelta(hours=hours)
    return [
        TimelineEvent(
            id=e.event_id,
            date=e.created_at,
            details=ANONYMOUS_LABEL if e.is_anonymous else e.user_id,
            meta=e.path,
            premium=lookup.is_premium(e.user_id),
        )
        for e in events
        if e.created_at >= threshold
    ]


def build_dashboard(
        events: Sequence[NormalizedEvent],
        lookup: Lookup,
        counts: AuxiliaryCounts,
        *,
        window_start: Optional[datetime],
        now: datetime,
        fine_grained: bool,
        tz: tzinfo,
        top_users_limit: int = TOP_USERS_LIMIT,
        timeline_hours: int = 24
) -> DashboardData:
    # the exhaustive scan may be partial; never report fewer users than the ranking shows
    in_range = unique_users(e.user_id for e in events)
    if counts.unique_user_ids is not None:
        in_range |= unique_users(counts.unique_user_ids)

    peak_users, peak_views, hourly_user_sum = hourly_stats(events, tz)
    range_start = window_start
    if range_start is None and events:
        range_start = min(e.created_at for e in events)
    hours = hours_in_range(range_start, now)

    kpi = Kpi(
        total_users=counts.total_users or 0,
        premium_users=counts.total_premium if counts.total_premium is not None else len(lookup.premium_chapas),
        unique_users=len(in_range),
        total_views=counts.total_views or len(events),
        peak_hourly_unique_users=peak_users,
        peak_hourly_views=peak_views,
        average_hourly_users=round(hourly_user_sum / hours, 1),
    )

    return DashboardData(
        kpi=kpi,
        top_pages=rank_pages(events, counts.home_views),
        top_users=rank_users(events, lookup, top_users_limit),
        activity_data=activity_series(bucket_events(events, fine_grained, tz)),
        timeline_events=build_timeline(events, lookup, now, timeline_hours),
    )
