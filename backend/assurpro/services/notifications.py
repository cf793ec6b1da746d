# backend/assurpro/services/notifications.py
from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from ..models.contrat import Contrat
from ..models.notification import Notification
from ..schemas.notifications import NotificationCreate, NotificationOut
from .errors import NotFoundError

LIST_LIMIT = 50


def to_notification_out(notification: Notification) -> NotificationOut:
    out = NotificationOut.model_validate(notification)
    if notification.contrat is not None:
        out.numero_contrat = notification.contrat.numero_contrat
    return out


def list_notifications(db: Session, entreprise_id: UUID, lu: bool | None = None) -> list[Notification]:
    query = (
        db.query(Notification)
        .options(joinedload(Notification.contrat))
        .filter(Notification.entreprise_id == entreprise_id)
    )
    if lu is not None:
        query = query.filter(Notification.lu.is_(lu))
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(LIST_LIMIT)
        .all()
    )


def mark_read(db: Session, entreprise_id: UUID, notification_id: int) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.entreprise_id == entreprise_id)
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification non trouvée")
    notification.lu = True
    db.commit()
    return notification


def create_notification(db: Session, entreprise_id: UUID, payload: NotificationCreate) -> Notification:
    contrat_id = payload.contrat_id
    if contrat_id is not None:
        owned = (
            db.query(Contrat.id)
            .filter(Contrat.id == contrat_id, Contrat.entreprise_id == entreprise_id)
            .first()
        )
        if owned is None:
            raise NotFoundError("Contrat non trouvé")

    notification = Notification(
        entreprise_id=entreprise_id,
        contrat_id=contrat_id,
        type=payload.type,
        titre=payload.titre,
        message=payload.message,
        lu=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification
