from datetime import datetime, timezone
from zoneinfo import ZoneInfo
from estiba_dashboard.analytics.bucketing import activity_series, bucket_events, truncate
from estiba_dashboard.analytics.normalize import NormalizedEvent

UTC = timezone.utc
MADRID = ZoneInfo("Europe/Madrid")


def _ev(user, hour, minute=0, day=19):
    return NormalizedEvent(path="/", user_id=user, created_at=datetime(2026, 10, day, hour, minute, tzinfo=UTC))


def test_truncate_to_hour_and_day():
    ts = datetime(2026, 10, 19, 14, 47, 12, 500, tzinfo=UTC)
    assert truncate(ts, True, UTC) == datetime(2026, 10, 19, 14, tzinfo=UTC)
    assert truncate(ts, False, UTC) == datetime(2026, 10, 19, tzinfo=UTC)


def test_hourly_buckets_sorted_with_unique_users():
    events = [_ev("B2", 15, 5), _ev("A7", 14, 10), _ev("A7", 14, 50), _ev("anon", 14, 55), _ev("B2", 14, 20)]
    buckets = bucket_events(events, fine_grained=True, tz=UTC)

    assert [b.label for b in buckets] == ["14:00", "15:00"]
    assert buckets[0].sort_key < buckets[1].sort_key
    assert buckets[0].sort_key == int(datetime(2026, 10, 19, 14, tzinfo=UTC).timestamp() * 1000)
    assert buckets[0].unique_users == {"A7", "B2"}
    assert buckets[0].view_count == 4
    assert buckets[1].view_count == 1


def test_daily_buckets_use_display_timezone():
    # 23:30 UTC on the 18th is already the 19th in Madrid (UTC+2 in October)
    events = [_ev("A7", 23, 30, day=18), _ev("B2", 9, 0, day=19), _ev("C3", 10, 0, day=17)]

    utc_days = bucket_events(events, fine_grained=False, tz=UTC)
    madrid_days = bucket_events(events, fine_grained=False, tz=MADRID)

    assert [b.label for b in utc_days] == ["17/10", "18/10", "19/10"]
    assert [b.label for b in madrid_days] == ["17/10", "19/10"]
    assert madrid_days[1].unique_users == {"A7", "B2"}


def test_activity_series_shape():
    events = [_ev("A7", 8), _ev("anon", 8), _ev("anon", 8)]
    series = activity_series(bucket_events(events, fine_grained=False, tz=UTC))
    assert len(series) == 1
    assert series[0].name == "19/10"
    assert series[0].usuarios == 1
    assert series[0].vistas == 3


def test_empty_input():
    assert bucket_events([], fine_grained=True, tz=UTC) == []
    assert activity_series([]) == []
