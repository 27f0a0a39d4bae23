import httpx
from fastapi import Request
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from estiba_dashboard.config import Settings


class RowSourceError(Exception):
    def __init__(self, table: str, status_code: int, detail: str = ""):
        self.table = table
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{table}: HTTP {status_code} {detail}".strip())


def _format_value(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def build_filters(
        eq: Optional[Dict[str, Any]] = None,
        in_: Optional[Dict[str, Sequence[Any]]] = None,
        gte: Optional[Dict[str, Any]] = None,
        not_null: Sequence[str] = ()
) -> List[Tuple[str, str]]:
    params = []
    for column, value in (eq or {}).items():
        params.append((column, f"eq.{_format_value(value)}"))
    for column, values in (in_ or {}).items():
        quoted = ",".join(f'"{_format_value(v)}"' for v in values)
        params.append((column, f"in.({quoted})"))
    for column, value in (gte or {}).items():
        params.append((column, f"gte.{_format_value(value)}"))
    for column in not_null:
        params.append((column, "not.is.null"))
    return params


def parse_content_range(table: str, header: Optional[str]) -> int:
    # "0-24/3573" or "*/3573"
    if not header or "/" not in header:
        raise RowSourceError(table, 200, "missing Content-Range")
    total = header.rsplit("/", 1)[1]
    if not total.isdigit():
        raise RowSourceError(table, 200, f"unknown total in Content-Range {header!r}")
    return int(total)


class PostgrestClient:
    """Row source backed by the BaaS REST endpoint (``/rest/v1/<table>``)."""

    def __init__(self, url: str, api_key: str, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport
        self.http: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgrestClient":
        return cls(settings.supabase_url, settings.supabase_anon_key, settings.request_timeout_seconds)

    async def connect(self):
        self.http = httpx.AsyncClient(
            base_url=f"{self.url}/rest/v1",
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
            timeout=self.timeout,
            transport=self.transport,
        )

    async def close(self):
        if self.http:
            await self.http.aclose()
            self.http = None

    async def __aenter__(self) -> "PostgrestClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def select(
            self,
            table: str,
            columns: str = "*",
            *,
            eq: Optional[Dict[str, Any]] = None,
            in_: Optional[Dict[str, Sequence[Any]]] = None,
            gte: Optional[Dict[str, Any]] = None,
            not_null: Sequence[str] = (),
            order: Optional[Tuple[str, bool]] = None,
            offset: int = 0,
            limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        params = [("select", columns)] + build_filters(eq, in_, gte, not_null)
        if order:
            column, descending = order
            params.append(("order", f"{column}.{'desc' if descending else 'asc'}"))
        if offset:
            params.append(("offset", str(offset)))
        if limit is not None:
            params.append(("limit", str(limit)))

        response = await self.http.get(f"/{table}", params=params)
        if response.status_code >= 400:
            raise RowSourceError(table, response.status_code, response.text)
        return response.json()

    async def count(
            self,
            table: str,
            *,
            eq: Optional[Dict[str, Any]] = None,
            in_: Optional[Dict[str, Sequence[Any]]] = None,
            gte: Optional[Dict[str, Any]] = None,
            not_null: Sequence[str] = ()
    ) -> int:
        params = [("select", "id")] + build_filters(eq, in_, gte, not_null)
        response = await self.http.head(f"/{table}", params=params, headers={"Prefer": "count=exact"})
        if response.status_code >= 400:
            raise RowSourceError(table, response.status_code)
        return parse_content_range(table, response.headers.get("content-range"))


async def get_row_source(request: Request) -> PostgrestClient:
    return request.app.state.row_source
