from sqlalchemy.orm import Session

from app.models import Notification


def notify(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    type: str = "info",
    category: str | None = None,
    action_url: str | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        category=category,
        action_url=action_url,
    )
    db.add(notification)
    return notification


def order_url(order_number: str) -> str:
    return f"/orders/{order_number}"
