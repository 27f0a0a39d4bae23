from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Kpi(CamelModel):
    total_users: int
    premium_users: int
    unique_users: int
    total_views: int
    peak_hourly_unique_users: int
    peak_hourly_views: int
    average_hourly_users: float


class RankedItem(CamelModel):
    name: str
    value: int


class TopUser(RankedItem):
    premium: bool
    display_name: Optional[str] = None


class ActivityPoint(CamelModel):
    name: str
    usuarios: int
    vistas: int


class TimelineEvent(CamelModel):
    id: Optional[str] = None
    type: str = "page_view"
    date: datetime
    details: str
    meta: str
    premium: bool


class DashboardData(CamelModel):
    kpi: Kpi
    top_pages: List[RankedItem]
    top_users: List[TopUser]
    activity_data: List[ActivityPoint]
    timeline_events: List[TimelineEvent]


class UserProfile(CamelModel):
    id: str
    chapa: str
    name: str
    email: str
    role: str
    status: str
    premium: bool
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PremiumSubscription(CamelModel):
    id: str
    user_id: Optional[str] = None
    chapa: str
    status: Optional[str] = None
    plan_interval: str
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    user_email: str
    user_name: str
