from enum import Enum
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from estiba_dashboard.db.postgrest import get_row_source
from estiba_dashboard.models.dashboard import UserProfile
from estiba_dashboard.services.users import filter_users, list_users, sort_records
import structlog

router = APIRouter()
logger = structlog.get_logger()


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class UserSortField(str, Enum):
    CHAPA = "chapa"
    NAME = "name"
    EMAIL = "email"
    ROLE = "role"
    STATUS = "status"
    PREMIUM = "premium"
    LAST_SEEN = "last_seen"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


@router.get("/users", response_model=List[UserProfile])
async def get_users(
        search: Optional[str] = Query(None, max_length=100),
        sort_by: UserSortField = Query(UserSortField.CREATED_AT),
        order: SortOrder = Query(SortOrder.DESC),
        source=Depends(get_row_source)
):
    users = filter_users(await list_users(source), search)
    result = sort_records(users, sort_by.value, descending=order is SortOrder.DESC)
    logger.info("users_query", search=search, sort_by=sort_by.value, count=len(result))
    return result
