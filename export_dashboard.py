import sys
import asyncio
from pathlib import Path
from typing import Optional
from estiba_dashboard.config import settings
from estiba_dashboard.db.postgrest import PostgrestClient
from estiba_dashboard.services.dashboard import TimeWindow, get_dashboard_data
import structlog

logger = structlog.get_logger()

WINDOWS = [w.value for w in TimeWindow]


async def export_dashboard(window: TimeWindow, output: Optional[Path] = None) -> bool:
    logger.info("export_started", window=window.value, output=str(output) if output else None)

    async with PostgrestClient.from_settings(settings) as source:
        data = await get_dashboard_data(source, window)

    if data is None:
        logger.error("export_failed", window=window.value)
        return False

    payload = data.model_dump_json(by_alias=True, indent=2)
    if output is None:
        print(payload)
    else:
        output.write_text(payload, encoding='utf-8')

    logger.info("export_completed", window=window.value, views=data.kpi.total_views)
    return True


if __name__ == "__main__":
    if len(sys.argv) < 2 or sys.argv[1] not in WINDOWS:
        print(f"Usage: python export_dashboard.py <{'|'.join(WINDOWS)}> [output.json]")
        sys.exit(1)

    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))

    output = Path(sys.argv[2]) if len(sys.argv) > 2 else None

    if output is not None and not output.parent.exists():
        print(f"Directory not found: {output.parent}")
        sys.exit(1)

    ok = asyncio.run(export_dashboard(TimeWindow(sys.argv[1]), output))
    sys.exit(0 if ok else 1)
