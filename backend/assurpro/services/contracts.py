# backend/assurpro/services/contracts.py
"""
Contract lifecycle: listing with renewal hints, creation, renewal, edits
and payment tracking. Every query is scoped to one company.
"""
from __future__ import annotations

import calendar
import logging
import secrets
import string
import time
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..core.config import get_settings
from ..models.client import Client
from ..models.contrat import Contrat, ContractStatus
from ..models.vehicule import Vehicule
from ..schemas.contracts import (
    ContractCreate,
    ContractOut,
    ContractRenew,
    ContractUpdate,
    PaymentUpdate,
    PremiumBreakdownOut,
)
from .errors import InvalidInputError, NotFoundError
from .premium import compute_breakdown

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic; 31 Jan + 1 month is the last day of February."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def generate_contract_number() -> str:
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(5))
    return f"CONT-{int(time.time() * 1000)}-{suffix}"


def to_contract_out(contrat: Contrat, today: date | None = None) -> ContractOut:
    today = today or date.today()
    jours_restants = (contrat.date_fin - today).days
    alert_days = get_settings().RENEWAL_ALERT_DAYS

    montant = Decimal(str(contrat.montant or 0))
    breakdown = PremiumBreakdownOut.from_breakdown(compute_breakdown(montant)) if montant > 0 else None

    client = contrat.client
    vehicule = contrat.vehicule
    return ContractOut(
        id=contrat.id,
        client_id=contrat.client_id,
        vehicule_id=contrat.vehicule_id,
        entreprise_id=contrat.entreprise_id,
        numero_contrat=contrat.numero_contrat,
        type_contrat=contrat.type_contrat,
        duree_mois=contrat.duree_mois,
        date_debut=contrat.date_debut,
        date_fin=contrat.date_fin,
        montant=float(montant),
        montant_paye=float(contrat.montant_paye or 0),
        montant_restant=float(contrat.montant_restant or 0),
        statut=contrat.statut,
        created_at=contrat.created_at,
        updated_at=contrat.updated_at,
        client_nom=client.nom if client else None,
        client_prenom=client.prenom if client else None,
        client_telephone=client.telephone if client else None,
        client_email=client.email if client else None,
        marque=vehicule.marque if vehicule else None,
        modele=vehicule.modele if vehicule else None,
        immatriculation=vehicule.immatriculation if vehicule else None,
        annee=vehicule.annee if vehicule else None,
        couleur=vehicule.couleur if vehicule else None,
        jours_restants=jours_restants,
        est_expire=jours_restants < 0,
        alerte_renouvellement=0 <= jours_restants <= alert_days,
        breakdown=breakdown,
    )


def list_contracts(
    db: Session,
    entreprise_id: UUID,
    statut: str | None = None,
    search: str | None = None,
) -> list[Contrat]:
    query = (
        db.query(Contrat)
        .options(joinedload(Contrat.client), joinedload(Contrat.vehicule))
        .join(Client, Contrat.client_id == Client.id)
        .outerjoin(Vehicule, Contrat.vehicule_id == Vehicule.id)
        .filter(Contrat.entreprise_id == entreprise_id)
    )
    if statut:
        query = query.filter(Contrat.statut == statut)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Contrat.numero_contrat.ilike(pattern),
                Client.nom.ilike(pattern),
                Client.prenom.ilike(pattern),
                Vehicule.immatriculation.ilike(pattern),
            )
        )
    return query.order_by(Contrat.date_fin.asc(), Contrat.id.asc()).all()


def get_contract(db: Session, entreprise_id: UUID, contrat_id: int) -> Contrat:
    contrat = (
        db.query(Contrat)
        .options(joinedload(Contrat.client), joinedload(Contrat.vehicule))
        .filter(Contrat.id == contrat_id, Contrat.entreprise_id == entreprise_id)
        .first()
    )
    if contrat is None:
        raise NotFoundError("Contrat non trouvé")
    return contrat


def create_contract(db: Session, entreprise_id: UUID, payload: ContractCreate) -> Contrat:
    client = (
        db.query(Client)
        .filter(Client.id == payload.client_id, Client.entreprise_id == entreprise_id)
        .first()
    )
    if client is None:
        raise NotFoundError("Client non trouvé")

    vehicule = (
        db.query(Vehicule)
        .filter(Vehicule.id == payload.vehicule_id, Vehicule.client_id == client.id)
        .first()
    )
    if vehicule is None:
        raise NotFoundError("Véhicule non trouvé pour ce client")

    contrat = Contrat(
        client_id=client.id,
        vehicule_id=vehicule.id,
        entreprise_id=entreprise_id,
        numero_contrat=payload.numero_police or generate_contract_number(),
        type_contrat=payload.type_contrat,
        duree_mois=payload.duree_mois,
        date_debut=payload.date_debut,
        date_fin=add_months(payload.date_debut, payload.duree_mois),
        montant=payload.montant,
        montant_paye=Decimal("0"),
        montant_restant=Decimal("0"),
        statut=ContractStatus.ACTIF.value,
    )
    db.add(contrat)
    db.commit()
    db.refresh(contrat)
    logger.info(
        "Contract created",
        extra={"entreprise_id": entreprise_id, "contrat_id": contrat.id, "step": "create_contract"},
    )
    return contrat


def renew_contract(
    db: Session,
    entreprise_id: UUID,
    contrat_id: int,
    payload: ContractRenew,
) -> Contrat:
    """Close the current contract and open its successor the day after it ends."""
    old = get_contract(db, entreprise_id, contrat_id)
    duree = payload.duree_mois or old.duree_mois
    debut = old.date_fin + timedelta(days=1)

    old.statut = ContractStatus.RENOUVELE.value
    renewed = Contrat(
        client_id=old.client_id,
        vehicule_id=old.vehicule_id,
        entreprise_id=entreprise_id,
        numero_contrat=generate_contract_number(),
        type_contrat=old.type_contrat,
        duree_mois=duree,
        date_debut=debut,
        date_fin=add_months(debut, duree),
        montant=payload.montant or old.montant,
        montant_paye=Decimal("0"),
        montant_restant=Decimal("0"),
        statut=ContractStatus.ACTIF.value,
    )
    db.add(renewed)
    db.commit()
    db.refresh(renewed)
    logger.info(
        "Contract %s renewed as %s", old.id, renewed.id,
        extra={"entreprise_id": entreprise_id, "contrat_id": renewed.id, "step": "renew_contract"},
    )
    return renewed


def update_contract(
    db: Session,
    entreprise_id: UUID,
    contrat_id: int,
    payload: ContractUpdate,
) -> Contrat:
    contrat = get_contract(db, entreprise_id, contrat_id)

    if payload.date_debut or payload.duree_mois:
        debut = payload.date_debut or contrat.date_debut
        duree = payload.duree_mois or contrat.duree_mois
        contrat.date_fin = add_months(debut, duree)

    if payload.type_contrat:
        contrat.type_contrat = payload.type_contrat
    if payload.duree_mois:
        contrat.duree_mois = payload.duree_mois
    if payload.date_debut:
        contrat.date_debut = payload.date_debut
    if payload.montant:
        contrat.montant = payload.montant
    if payload.statut:
        contrat.statut = payload.statut
    contrat.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(contrat)
    return contrat


def update_payment(
    db: Session,
    entreprise_id: UUID,
    contrat_id: int,
    payload: PaymentUpdate,
) -> Contrat:
    """Amounts are entered by hand; a missing amount counts as zero."""
    contrat = get_contract(db, entreprise_id, contrat_id)

    paye = payload.montant_paye if payload.montant_paye is not None else Decimal("0")
    restant = payload.montant_restant if payload.montant_restant is not None else Decimal("0")
    if paye < 0:
        raise InvalidInputError("Le montant payé ne peut pas être négatif")
    if restant < 0:
        raise InvalidInputError("Le montant restant ne peut pas être négatif")

    contrat.montant_paye = paye
    contrat.montant_restant = restant
    contrat.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(contrat)
    return contrat


def delete_contract(db: Session, entreprise_id: UUID, contrat_id: int) -> None:
    contrat = get_contract(db, entreprise_id, contrat_id)
    db.delete(contrat)
    db.commit()
    logger.info(
        "Contract deleted",
        extra={"entreprise_id": entreprise_id, "contrat_id": contrat_id, "step": "delete_contract"},
    )
