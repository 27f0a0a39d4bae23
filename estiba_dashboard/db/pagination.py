from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
import httpx
import structlog
from prometheus_client import Counter
from estiba_dashboard.db.postgrest import RowSourceError

logger = structlog.get_logger()

fetch_failures_counter = Counter(
    'remote_fetch_failures_total', 'Remote page or count queries that failed', ['table']
)

FETCH_ERRORS = (RowSourceError, httpx.HTTPError)


async def fetch_all(
        source,
        table: str,
        columns: str = "*",
        *,
        order_column: str,
        since: Optional[datetime] = None,
        eq: Optional[Dict[str, Any]] = None,
        in_: Optional[Dict[str, Sequence[Any]]] = None,
        page_size: int = 1000,
        max_rows: Optional[int] = None,
        required: bool = False
) -> List[Dict[str, Any]]:
    """Scan ``table`` newest first, one page at a time, until it runs out.

    A failed page ends the scan and whatever was gathered so far is returned.
    With ``required=True`` a failure on the first page is raised instead, so
    callers can tell "no data" apart from "no answer".
    """
    rows: List[Dict[str, Any]] = []
    gte = {order_column: since} if since is not None else None
    offset = 0

    while True:
        limit = page_size
        if max_rows is not None:
            limit = min(page_size, max_rows - len(rows))

        try:
            page = await source.select(
                table, columns, eq=eq, in_=in_, gte=gte,
                order=(order_column, True), offset=offset, limit=limit
            )
        except FETCH_ERRORS as e:
            fetch_failures_counter.labels(table=table).inc()
            if required and not rows:
                raise
            logger.warning("page_fetch_failed", table=table, offset=offset, gathered=len(rows), error=str(e))
            break

        if not page:
            break

        rows.extend(page)
        offset += len(page)

        if len(page) < limit:
            break
        if max_rows is not None and len(rows) >= max_rows:
            break

    logger.debug("table_scanned", table=table, rows=len(rows))
    return rows[:max_rows] if max_rows is not None else rows


async def safe_count(source, table: str, **filters) -> Optional[int]:
    try:
        return await source.count(table, **filters)
    except FETCH_ERRORS as e:
        fetch_failures_counter.labels(table=table).inc()
        logger.warning("count_query_failed", table=table, error=str(e))
        return None
