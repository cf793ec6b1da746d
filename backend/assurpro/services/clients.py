# backend/assurpro/services/clients.py
from __future__ import annotations

import logging
import math
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ..models.client import Client
from ..models.contrat import Contrat, ContractStatus
from ..models.vehicule import Vehicule
from ..schemas.contracts import (
    ClientContractIn,
    ClientContractSummary,
    ClientCreate,
    ClientOut,
    ClientUpdate,
    VehiculeOut,
)
from .errors import ConflictError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_TYPE = "Tous risques"
DEFAULT_DURATION_MONTHS = 12
# Type recorded when a contract is first attached through a client edit
EDIT_CONTRACT_TYPE = "AC"


def duration_in_months(debut: date, fin: date) -> int:
    """Whole 30-day periods between two dates, rounded up."""
    return math.ceil(abs((fin - debut).days) / 30)


def to_client_out(client: Client) -> ClientOut:
    contrats = list(client.contrats)
    has_active = any(c.statut == ContractStatus.ACTIF.value for c in contrats)
    return ClientOut(
        id=client.id,
        entreprise_id=client.entreprise_id,
        nom=client.nom,
        prenom=client.prenom or "",
        telephone=client.telephone,
        email=client.email,
        adresse=client.adresse,
        created_at=client.created_at,
        updated_at=client.updated_at,
        vehicules=[VehiculeOut.model_validate(v) for v in client.vehicules],
        contrats=[ClientContractSummary.model_validate(c) for c in contrats],
        nombre_contrats=len(contrats),
        dernier_contrat=max((c.date_fin for c in contrats), default=None),
        client_statut="actif" if has_active else "inactif",
    )


def list_clients(
    db: Session,
    entreprise_id: UUID,
    search: str | None = None,
    statut: str | None = None,
) -> list[Client]:
    query = (
        db.query(Client)
        .options(selectinload(Client.vehicules), selectinload(Client.contrats))
        .filter(Client.entreprise_id == entreprise_id)
    )
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Client.nom.ilike(pattern),
                Client.telephone.ilike(pattern),
                Client.vehicules.any(Vehicule.immatriculation.ilike(pattern)),
            )
        )

    has_active = Client.contrats.any(Contrat.statut == ContractStatus.ACTIF.value)
    if statut == "actif":
        query = query.filter(has_active)
    elif statut == "inactif":
        query = query.filter(~has_active)

    return query.order_by(Client.created_at.desc(), Client.id.desc()).all()


def get_client(db: Session, entreprise_id: UUID, client_id: int) -> Client:
    client = (
        db.query(Client)
        .options(selectinload(Client.vehicules), selectinload(Client.contrats))
        .filter(Client.id == client_id, Client.entreprise_id == entreprise_id)
        .first()
    )
    if client is None:
        raise NotFoundError("Client non trouvé")
    return client


def create_client(db: Session, entreprise_id: UUID, payload: ClientCreate) -> tuple[Client, Vehicule, Contrat]:
    """Create a client with its vehicle and first contract in one transaction."""
    duplicate = (
        db.query(Client.id)
        .filter(Client.entreprise_id == entreprise_id, Client.telephone == payload.telephone)
        .first()
    )
    if duplicate is not None:
        raise ConflictError("Un client avec ce numéro de téléphone existe déjà")

    client = Client(entreprise_id=entreprise_id, nom=payload.nom, prenom="", telephone=payload.telephone)
    db.add(client)
    db.flush()

    vehicule = Vehicule(
        client_id=client.id,
        marque=payload.vehicule.marque or "",
        modele=payload.vehicule.modele or "",
        immatriculation=payload.vehicule.immatriculation,
    )
    db.add(vehicule)
    db.flush()

    terms = payload.contrat
    contrat = Contrat(
        client_id=client.id,
        vehicule_id=vehicule.id,
        entreprise_id=entreprise_id,
        numero_contrat=terms.numero_police,
        type_contrat=terms.type_contrat or DEFAULT_CONTRACT_TYPE,
        duree_mois=terms.duree_mois or DEFAULT_DURATION_MONTHS,
        date_debut=terms.date_debut,
        date_fin=terms.date_fin,
        montant=terms.montant,
        montant_paye=terms.montant_paye,
        montant_restant=terms.montant_restant,
        statut=ContractStatus.ACTIF.value,
    )
    db.add(contrat)
    db.commit()
    db.refresh(client)

    logger.info(
        "Client created",
        extra={"entreprise_id": entreprise_id, "contrat_id": contrat.id, "step": "create_client"},
    )
    return client, vehicule, contrat


def _apply_contract_terms(contrat: Contrat, terms: ClientContractIn, today: date) -> None:
    contrat.numero_contrat = terms.numero_police
    contrat.date_debut = terms.date_debut
    contrat.date_fin = terms.date_fin
    contrat.duree_mois = duration_in_months(terms.date_debut, terms.date_fin)
    contrat.montant = terms.montant
    contrat.montant_paye = terms.montant_paye
    contrat.montant_restant = terms.montant_restant
    contrat.statut = (
        ContractStatus.EXPIRE.value if terms.date_fin < today else ContractStatus.ACTIF.value
    )


def update_client(
    db: Session,
    entreprise_id: UUID,
    client_id: int,
    payload: ClientUpdate,
    today: date | None = None,
) -> Client:
    """
    Edit a client and, when given, its first vehicle and latest contract.

    The vehicle and the contract are created when the client has none yet.
    A contract can only be attached to a client that has a vehicle.
    """
    today = today or date.today()
    client = get_client(db, entreprise_id, client_id)

    if payload.nom:
        client.nom = payload.nom
    if payload.prenom:
        client.prenom = payload.prenom
    if payload.telephone:
        client.telephone = payload.telephone
    client.updated_at = datetime.utcnow()

    if payload.vehicule is not None:
        vehicule = client.vehicules[0] if client.vehicules else None
        if vehicule is None:
            vehicule = Vehicule(client_id=client.id)
            client.vehicules.append(vehicule)
        vehicule.immatriculation = payload.vehicule.immatriculation
        vehicule.marque = payload.vehicule.marque or ""
        vehicule.modele = payload.vehicule.modele or ""
        db.flush()

    if payload.contrat is not None:
        latest = max(client.contrats, key=lambda c: c.date_fin, default=None)
        if latest is None:
            if not client.vehicules:
                db.rollback()
                raise InvalidInputError("Le client doit avoir un véhicule pour créer un contrat")
            latest = Contrat(
                client_id=client.id,
                vehicule_id=client.vehicules[0].id,
                entreprise_id=entreprise_id,
                type_contrat=payload.contrat.type_contrat or EDIT_CONTRACT_TYPE,
            )
            client.contrats.append(latest)
        _apply_contract_terms(latest, payload.contrat, today)

    db.commit()
    db.refresh(client)
    return client


def delete_client(db: Session, entreprise_id: UUID, client_id: int) -> None:
    client = get_client(db, entreprise_id, client_id)
    db.delete(client)
    db.commit()
    logger.info(
        "Client %s deleted", client_id,
        extra={"entreprise_id": entreprise_id, "step": "delete_client"},
    )
