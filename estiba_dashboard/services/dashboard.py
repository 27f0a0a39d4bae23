import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo
import structlog
from prometheus_client import Counter, Histogram
from estiba_dashboard.analytics.aggregate import HOME_ALIASES, AuxiliaryCounts, build_dashboard
from estiba_dashboard.analytics.lookup import ACTIVE_STATUS, build_lookup
from estiba_dashboard.analytics.normalize import normalize_events
from estiba_dashboard.config import Settings, settings as default_settings
from estiba_dashboard.db.pagination import fetch_all, safe_count
from estiba_dashboard.models.dashboard import DashboardData
from estiba_dashboard.models.rows import RawEventRow, SubscriptionRecord, UserRecord, decode_rows

logger = structlog.get_logger()

dashboard_requests_counter = Counter('dashboard_requests_total', 'Dashboard builds requested', ['window'])
dashboard_failed_counter = Counter('dashboard_failures_total', 'Dashboard builds that returned no data')
dashboard_duration = Histogram('dashboard_build_seconds', 'Dashboard build duration')


class TimeWindow(str, Enum):
    DAY = "1d"
    THREE_DAYS = "3d"
    WEEK = "7d"
    MONTH = "30d"
    ALL = "all"

    @property
    def days(self) -> Optional[int]:
        if self is TimeWindow.ALL:
            return None
        return int(self.value[:-1])

    def start(self, now: datetime) -> Optional[datetime]:
        if self.days is None:
            return None
        return now - timedelta(days=self.days)


async def get_dashboard_data(
        source,
        window: TimeWindow = TimeWindow.DAY,
        *,
        now: Optional[datetime] = None,
        settings: Settings = default_settings
) -> Optional[DashboardData]:
    window = TimeWindow(window)
    now = now or datetime.now(timezone.utc)
    since = window.start(now)
    dashboard_requests_counter.labels(window=window.value).inc()

    with dashboard_duration.time():
        try:
            data = await _build(source, window, now, since, settings)
        except Exception as e:
            dashboard_failed_counter.inc()
            logger.error("dashboard_build_failed", window=window.value, error=str(e))
            return None

    logger.info(
        "dashboard_built",
        window=window.value,
        views=data.kpi.total_views,
        unique_users=data.kpi.unique_users,
        timeline=len(data.timeline_events)
    )
    return data


async def _gather_or_cancel(*coros):
    """Run the sub-queries together; when one raises, the rest are cancelled before it propagates."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def _build(source, window: TimeWindow, now: datetime, since: Optional[datetime],
                 settings: Settings) -> DashboardData:
    events_table = settings.events_table
    since_filter = {"gte": {"ts": since}} if since is not None else {"not_null": ["ts"]}
    active = {settings.subscription_status_column: ACTIVE_STATUS}

    (event_rows, visitor_rows, user_rows, subscription_rows,
     total_views, home_views, total_users, total_premium) = await _gather_or_cancel(
        fetch_all(source, events_table, order_column="ts", since=since,
                  page_size=settings.page_size, max_rows=settings.event_scan_limit, required=True),
        fetch_all(source, events_table, "chapa,ts", order_column="ts", since=since,
                  page_size=settings.page_size),
        fetch_all(source, settings.users_table, order_column="created_at",
                  page_size=settings.page_size, max_rows=settings.user_scan_limit),
        fetch_all(source, settings.subscriptions_table, "*", order_column="created_at",
                  eq=active, page_size=settings.page_size),
        safe_count(source, events_table, **since_filter),
        safe_count(source, events_table, in_={"page": list(HOME_ALIASES)}, **since_filter),
        safe_count(source, settings.users_table),
        safe_count(source, settings.subscriptions_table, eq=active),
    )

    events = normalize_events(decode_rows(RawEventRow, event_rows))
    lookup = build_lookup(decode_rows(UserRecord, user_rows), decode_rows(SubscriptionRecord, subscription_rows))
    counts = AuxiliaryCounts(
        total_views=total_views,
        home_views=home_views,
        total_users=total_users,
        total_premium=total_premium,
        unique_user_ids={e.user_id for e in normalize_events(decode_rows(RawEventRow, visitor_rows))},
    )

    return build_dashboard(
        events,
        lookup,
        counts,
        window_start=since,
        now=now,
        fine_grained=window is TimeWindow.DAY,
        tz=ZoneInfo(settings.display_timezone),
        top_users_limit=settings.top_users_limit,
        timeline_hours=settings.timeline_hours,
    )
