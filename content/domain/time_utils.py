from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime | None) -> datetime | None:
    """타임존 여부에 따라 UTC aware datetime으로 변환한다."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    try:
        return to_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return to_utc(value).isoformat().replace("+00:00", "Z")


def hours_between(later: datetime, earlier: datetime) -> float:
    return (to_utc(later) - to_utc(earlier)).total_seconds() / 3600


KST = timezone(timedelta(hours=9))


def kst_hour(value: datetime) -> int:
    """수집 모드 스케줄은 한국 시간 기준이다."""
    return to_utc(value).astimezone(KST).hour
