from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Type, TypeVar
from pydantic import (
    AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator
)
import structlog

logger = structlog.get_logger()

_datetime_adapter = TypeAdapter(datetime)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Lenient timestamp parse: anything unreadable becomes ``None``."""
    if value is None or value == "":
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        if not isinstance(value, str):
            return None
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None


class RemoteRow(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    # field -> columns tried in order; the first non-empty one wins
    fallbacks: ClassVar[Dict[str, Tuple[str, ...]]] = {}

    @model_validator(mode="before")
    @classmethod
    def _resolve_fallbacks(cls, data):
        if not isinstance(data, dict) or not cls.fallbacks:
            return data
        data = dict(data)
        for field_name, columns in cls.fallbacks.items():
            for column in columns:
                value = data.get(column)
                if value is not None and value != "":
                    data[field_name] = value
                    break
        return data

    @field_validator("id", "chapa", mode="before", check_fields=False)
    @classmethod
    def _coerce_identifier(cls, value):
        return _as_text(value)


class RawEventRow(RemoteRow):
    id: Optional[str] = None
    page: Optional[str] = None
    chapa: Optional[str] = None
    ts: Optional[datetime] = None
    created_at: Optional[datetime] = None
    inserted_at: Optional[datetime] = None

    @field_validator("page", mode="before")
    @classmethod
    def _coerce_page(cls, value):
        return None if value is None else str(value)

    @field_validator("ts", "created_at", "inserted_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value):
        return parse_timestamp(value)


class UserRecord(RemoteRow):
    fallbacks: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "name": ("name", "nombre", "full_name"),
        "role": ("role", "rol"),
        "status": ("status", "estado"),
        "last_seen": ("last_seen", "ultimo_acceso", "last_sign_in_at"),
    }

    id: Optional[str] = None
    chapa: Optional[str] = None
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "nombre", "full_name"))
    email: Optional[str] = None
    role: Optional[str] = Field(default=None, validation_alias=AliasChoices("role", "rol"))
    status: Optional[str] = Field(default=None, validation_alias=AliasChoices("status", "estado"))
    last_seen: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("last_seen", "ultimo_acceso", "last_sign_in_at")
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("last_seen", "created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value):
        return parse_timestamp(value)


class SubscriptionRecord(RemoteRow):
    fallbacks: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "status": ("status", "estado"),
        "period_start": ("period_start", "periodo_inicio"),
        "period_end": ("period_end", "periodo_fin"),
    }

    id: Optional[str] = None
    chapa: Optional[str] = None
    status: Optional[str] = Field(default=None, validation_alias=AliasChoices("status", "estado"))
    period_start: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("period_start", "periodo_inicio")
    )
    period_end: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("period_end", "periodo_fin")
    )
    created_at: Optional[datetime] = None

    @field_validator("period_start", "period_end", "created_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value):
        return parse_timestamp(value)


RowT = TypeVar("RowT", bound=RemoteRow)


def decode_rows(model: Type[RowT], rows: Iterable[Any]) -> List[RowT]:
    decoded = []
    for row in rows:
        try:
            decoded.append(model.model_validate(row))
        except ValidationError as e:
            logger.debug("row_dropped", model=model.__name__, error=str(e))
    return decoded
