from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional
from estiba_dashboard.models.rows import RawEventRow

ANON = "anon"


@dataclass(frozen=True)
class NormalizedEvent:
    path: str
    user_id: str
    created_at: datetime
    event_id: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id == ANON


def normalize_event(row: RawEventRow) -> Optional[NormalizedEvent]:
    created_at = row.ts or row.created_at or row.inserted_at
    if created_at is None:
        return None

    return NormalizedEvent(
        path=row.page or "/",
        user_id=row.chapa or ANON,
        created_at=created_at,
        event_id=row.id,
    )


def normalize_events(rows: Iterable[RawEventRow]) -> List[NormalizedEvent]:
    events = []
    for row in rows:
        event = normalize_event(row)
        if event is not None:
            events.append(event)
    return events
