from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
import logging

from sqlalchemy.orm import Session, joinedload

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import SessionLocal
from ..models.contrat import Contrat, ContractStatus
from ..models.entreprise import Entreprise
from ..models.notification import Notification, NotificationType
from .mailer import Mailer, RenewalReminderItem

logger = logging.getLogger(__name__)


@dataclass
class RenewalScanResult:
    expired: int = 0
    notifications: int = 0
    emails_sent: int = 0


def expire_lapsed_contracts(db: Session, today: date) -> int:
    return (
        db.query(Contrat)
        .filter(
            Contrat.statut == ContractStatus.ACTIF.value,
            Contrat.date_fin < today,
        )
        .update({Contrat.statut: ContractStatus.EXPIRE.value}, synchronize_session=False)
    )


def _already_notified(db: Session, contrat_ids: list[int]) -> set[int]:
    if not contrat_ids:
        return set()
    rows = (
        db.query(Notification.contrat_id)
        .filter(
            Notification.type == NotificationType.RENOUVELLEMENT,
            Notification.contrat_id.in_(contrat_ids),
        )
        .all()
    )
    return {r[0] for r in rows}


def run_renewal_scan(
    db: Session,
    today: date | None = None,
    mailer: Mailer | None = None,
    alert_days: int | None = None,
) -> RenewalScanResult:
    """
    Expire lapsed contracts and remind companies of upcoming renewals.

    A contract gets at most one renewal notification. E-mail is sent once per
    company for the contracts newly notified in this run; a failed send does
    not undo the notifications.
    """
    today = today or date.today()
    alert_days = get_settings().RENEWAL_ALERT_DAYS if alert_days is None else alert_days
    result = RenewalScanResult()

    result.expired = expire_lapsed_contracts(db, today)

    upcoming = (
        db.query(Contrat)
        .options(joinedload(Contrat.client), joinedload(Contrat.vehicule))
        .filter(
            Contrat.statut == ContractStatus.ACTIF.value,
            Contrat.date_fin >= today,
            Contrat.date_fin <= today + timedelta(days=alert_days),
        )
        .order_by(Contrat.date_fin.asc(), Contrat.id.asc())
        .all()
    )
    notified = _already_notified(db, [c.id for c in upcoming])

    per_company: dict = defaultdict(list)
    for contrat in upcoming:
        if contrat.id in notified:
            continue
        jours = (contrat.date_fin - today).days
        client_nom = contrat.client.nom if contrat.client else ""
        db.add(
            Notification(
                entreprise_id=contrat.entreprise_id,
                contrat_id=contrat.id,
                type=NotificationType.RENOUVELLEMENT,
                titre="Contrat à renouveler",
                message=(
                    f"Le contrat {contrat.numero_contrat} de {client_nom} "
                    f"arrive à échéance le {contrat.date_fin:%d/%m/%Y} ({jours} jour(s))."
                ),
                lu=False,
            )
        )
        per_company[contrat.entreprise_id].append(
            RenewalReminderItem(
                numero_contrat=contrat.numero_contrat,
                client_nom=client_nom,
                immatriculation=contrat.vehicule.immatriculation if contrat.vehicule else None,
                date_fin=contrat.date_fin,
                jours_restants=jours,
            )
        )
        result.notifications += 1

    db.commit()

    if mailer is not None and per_company:
        entreprises = db.query(Entreprise).filter(Entreprise.id.in_(list(per_company))).all()
        for entreprise in entreprises:
            if mailer.send_renewal_reminder(entreprise.email, entreprise.nom, per_company[entreprise.id]):
                result.emails_sent += 1
            else:
                logger.warning(
                    "Renewal reminder not delivered",
                    extra={"entreprise_id": entreprise.id, "step": "renewal_scan"},
                )

    logger.info(
        "Renewal scan done: %d expired, %d notified, %d e-mails",
        result.expired, result.notifications, result.emails_sent,
        extra={"step": "renewal_scan"},
    )
    return result


@celery_app.task(name="assurpro.services.renewals.scan_upcoming_renewals")
def scan_upcoming_renewals() -> dict:
    """Daily beat task; see run_renewal_scan."""
    db: Session = SessionLocal()
    try:
        result = run_renewal_scan(db, mailer=Mailer.from_settings())
        return {
            "expired": result.expired,
            "notifications": result.notifications,
            "emails_sent": result.emails_sent,
        }
    except Exception:
        db.rollback()
        logger.exception("Error during renewal scan", extra={"step": "renewal_scan"})
        raise
    finally:
        db.close()
