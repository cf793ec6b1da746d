from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.notifications import NotificationCreate
from ..services import notifications as notification_service
from ..services.accounts import AuthContext
from .deps import get_current_entreprise

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    lu: bool | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    rows = notification_service.list_notifications(db, ctx.entreprise_id, lu=lu)
    return {"notifications": [notification_service.to_notification_out(n) for n in rows]}


@router.put("/{notification_id}/read")
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    notification_service.mark_read(db, ctx.entreprise_id, notification_id)
    return {"message": "Notification marquée comme lue"}


@router.post("", status_code=201)
def create_notification(
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    notification = notification_service.create_notification(db, ctx.entreprise_id, payload)
    return {
        "message": "Notification créée avec succès",
        "notification": notification_service.to_notification_out(notification),
    }
