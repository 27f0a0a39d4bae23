from enum import Enum
from fastapi import APIRouter, Depends, Query
from typing import List
from estiba_dashboard.api.users import SortOrder
from estiba_dashboard.db.postgrest import get_row_source
from estiba_dashboard.models.dashboard import PremiumSubscription
from estiba_dashboard.services.users import list_active_subscriptions, sort_records
import structlog

router = APIRouter()
logger = structlog.get_logger()


class SubscriptionSortField(str, Enum):
    CHAPA = "chapa"
    USER_NAME = "user_name"
    USER_EMAIL = "user_email"
    PLAN_INTERVAL = "plan_interval"
    PERIOD_START = "period_start"
    PERIOD_END = "period_end"
    CREATED_AT = "created_at"


@router.get("/premium", response_model=List[PremiumSubscription])
async def get_premium(
        sort_by: SubscriptionSortField = Query(SubscriptionSortField.PERIOD_START),
        order: SortOrder = Query(SortOrder.DESC),
        source=Depends(get_row_source)
):
    subscriptions = await list_active_subscriptions(source)
    result = sort_records(subscriptions, sort_by.value, descending=order is SortOrder.DESC)
    logger.info("premium_query", sort_by=sort_by.value, count=len(result))
    return result
