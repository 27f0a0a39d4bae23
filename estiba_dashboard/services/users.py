import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, TypeVar
import structlog
from estiba_dashboard.analytics.lookup import ACTIVE_STATUS, build_premium_set, build_user_index
from estiba_dashboard.config import Settings, settings as default_settings
from estiba_dashboard.db.pagination import fetch_all
from estiba_dashboard.models.dashboard import CamelModel, PremiumSubscription, UserProfile
from estiba_dashboard.models.rows import SubscriptionRecord, UserRecord, decode_rows

logger = structlog.get_logger()

ANNUAL_PLAN = "Annual"
MONTHLY_PLAN = "Monthly"
ANNUAL_THRESHOLD_DAYS = 45

RecordT = TypeVar("RecordT", bound=CamelModel)


async def _active_subscriptions(source, settings: Settings, columns: str = "*") -> List[SubscriptionRecord]:
    rows = await fetch_all(
        source,
        settings.subscriptions_table,
        columns,
        order_column="created_at",
        eq={settings.subscription_status_column: ACTIVE_STATUS},
        page_size=settings.page_size
    )
    return decode_rows(SubscriptionRecord, rows)


def to_profile(user: UserRecord, premium: bool) -> UserProfile:
    return UserProfile(
        id=user.id or "",
        chapa=user.chapa or "N/A",
        name=user.name or "No Name",
        email=user.email or "No Email",
        role=user.role or "USER",
        status=user.status or "ACTIVO",
        premium=premium,
        last_seen=user.last_seen or user.created_at,
        created_at=user.created_at,
        updated_at=user.updated_at or user.created_at,
    )


async def list_users(source, settings: Settings = default_settings) -> List[UserProfile]:
    rows = await fetch_all(
        source,
        settings.users_table,
        order_column="created_at",
        page_size=settings.page_size,
        max_rows=settings.user_scan_limit
    )
    users = decode_rows(UserRecord, rows)
    premium_chapas = build_premium_set(await _active_subscriptions(source, settings))

    profiles = [to_profile(u, bool(u.chapa) and u.chapa in premium_chapas) for u in users]
    logger.info("users_listed", count=len(profiles), premium=sum(p.premium for p in profiles))
    return profiles


def plan_interval(start: Optional[datetime], end: Optional[datetime]) -> str:
    if start is None or end is None:
        return MONTHLY_PLAN
    days = math.ceil(abs(end - start) / timedelta(days=1))
    return ANNUAL_PLAN if days > ANNUAL_THRESHOLD_DAYS else MONTHLY_PLAN


async def list_active_subscriptions(source, settings: Settings = default_settings) -> List[PremiumSubscription]:
    subscriptions = await _active_subscriptions(source, settings)
    if not subscriptions:
        return []

    rows = await fetch_all(
        source,
        settings.users_table,
        order_column="created_at",
        page_size=settings.page_size,
        max_rows=settings.user_scan_limit
    )
    users_by_chapa = build_user_index(decode_rows(UserRecord, rows))

    result = []
    for sub in subscriptions:
        user = users_by_chapa.get(sub.chapa) if sub.chapa else None
        result.append(PremiumSubscription(
            id=sub.id or "",
            user_id=user.id if user else None,
            chapa=sub.chapa or "?",
            status=sub.status,
            plan_interval=plan_interval(sub.period_start, sub.period_end),
            period_start=sub.period_start,
            period_end=sub.period_end,
            created_at=sub.created_at,
            user_email=(user.email if user else None) or "Unknown",
            user_name=(user.name if user else None) or "User",
        ))

    logger.info("subscriptions_listed", count=len(result))
    return result


def filter_users(users: Sequence[UserProfile], search: Optional[str]) -> List[UserProfile]:
    if not search:
        return list(users)
    needle = search.lower()
    return [
        u for u in users
        if needle in u.name.lower() or needle in u.email.lower() or search in u.chapa
    ]


def sort_records(records: Sequence[RecordT], key: str, descending: bool = False) -> List[RecordT]:
    """Sort by ``key``; records missing the field always go last."""
    present = [r for r in records if getattr(r, key) is not None]
    missing = [r for r in records if getattr(r, key) is None]
    present.sort(key=lambda r: getattr(r, key), reverse=descending)
    return present + missing
