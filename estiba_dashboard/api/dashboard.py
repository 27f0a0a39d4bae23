from fastapi import APIRouter, Depends, HTTPException, Query, status
from estiba_dashboard.db.postgrest import get_row_source
from estiba_dashboard.models.dashboard import DashboardData
from estiba_dashboard.services.dashboard import TimeWindow, get_dashboard_data
import structlog

router = APIRouter()
logger = structlog.get_logger()


@router.get("/dashboard", response_model=DashboardData)
async def get_dashboard(
        window: TimeWindow = Query(TimeWindow.DAY),
        source=Depends(get_row_source)
):
    result = await get_dashboard_data(source, window)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Dashboard data unavailable"
        )

    logger.info("dashboard_query", window=window.value, pages=len(result.top_pages))
    return result
