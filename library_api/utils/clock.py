from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC: what the DateTime columns store and give back.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_naive_utc(value).replace(tzinfo=timezone.utc).isoformat()
