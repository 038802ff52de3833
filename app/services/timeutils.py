from datetime import datetime, timezone

from sqlalchemy.orm import Session


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def db_datetime(db: Session, value: datetime) -> datetime:
    """SQLite stores naive UTC; strip tzinfo before comparing in SQL there."""
    bind = db.get_bind()
    if bind and bind.dialect.name == "sqlite":
        return as_utc(value).replace(tzinfo=None)
    return value


def isoformat_or_none(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()
