from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import get_current_user
from app.models import Notification, User, get_db
from app.services.timeutils import isoformat_or_none

router = APIRouter()


@router.get("", summary="List my notifications, newest first")
def list_notifications(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    unread_only: bool = False,
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
    return {
        "success": True,
        "notifications": [
            {
                "id": n.id,
                "title": n.title,
                "message": n.message,
                "type": n.type,
                "category": n.category,
                "action_url": n.action_url,
                "is_read": n.is_read,
                "created_at": isoformat_or_none(n.created_at),
            }
            for n in rows
        ],
        "unread_count": sum(1 for n in rows if not n.is_read),
    }
