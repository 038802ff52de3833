from dataclasses import dataclass
from datetime import datetime, timedelta

from app.config import settings
from app.services.timeutils import as_utc, utcnow

SECONDS_PER_DAY = 24 * 60 * 60
WARNING_THRESHOLD_DAYS = 3


@dataclass(frozen=True)
class ReviewTimer:
    state: str  # normal | warning | expired
    text: str
    remaining_seconds: int
    deadline: datetime

    @property
    def expired(self) -> bool:
        return self.state == "expired"

    def as_dict(self) -> dict:
        return {
            "state": self.state,
            "text": self.text,
            "remaining_seconds": self.remaining_seconds,
            "deadline": self.deadline.isoformat(),
            "expired": self.expired,
        }


def review_deadline(created_at: datetime, sla_days: int | None = None) -> datetime:
    days = settings.REVIEW_SLA_DAYS if sla_days is None else sla_days
    return as_utc(created_at) + timedelta(days=days)


def remaining_review_time(
    created_at: datetime,
    admin_status: str,
    now: datetime | None = None,
    sla_days: int | None = None,
) -> ReviewTimer | None:
    """Display timer for a pending submission; None once it has been reviewed."""
    if admin_status != "pending":
        return None

    deadline = review_deadline(created_at, sla_days)
    current = as_utc(now) if now else utcnow()
    remaining = int((deadline - current).total_seconds())
    if remaining <= 0:
        return ReviewTimer(state="expired", text="EXPIRED", remaining_seconds=0, deadline=deadline)

    days, rest = divmod(remaining, SECONDS_PER_DAY)
    hours, rest = divmod(rest, 60 * 60)
    minutes = rest // 60

    if days > 1:
        text = f"{days} days left"
    elif days == 1:
        text = f"1 day {hours}h left"
    else:
        text = f"{hours}h {minutes}m left"

    state = "normal" if days >= WARNING_THRESHOLD_DAYS else "warning"
    return ReviewTimer(state=state, text=text, remaining_seconds=remaining, deadline=deadline)
