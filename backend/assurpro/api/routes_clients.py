from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.contracts import ClientCreate, ClientCreated, ClientUpdate
from ..services import clients as client_service
from ..services.accounts import AuthContext
from .deps import get_current_entreprise

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("")
def list_clients(
    search: str | None = None,
    statut: Literal["actif", "inactif"] | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    rows = client_service.list_clients(db, ctx.entreprise_id, search=search, statut=statut)
    return {"clients": [client_service.to_client_out(c) for c in rows]}


@router.get("/{client_id}")
def get_client(
    client_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    client = client_service.get_client(db, ctx.entreprise_id, client_id)
    return {"client": client_service.to_client_out(client)}


@router.post("", status_code=201, response_model=ClientCreated)
def create_client(
    payload: ClientCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    client, vehicule, contrat = client_service.create_client(db, ctx.entreprise_id, payload)
    return ClientCreated(
        message="Client créé avec succès",
        client=client_service.to_client_out(client),
        vehicule_id=vehicule.id,
        contrat_id=contrat.id,
    )


@router.put("/{client_id}")
def update_client(
    client_id: int,
    payload: ClientUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    client = client_service.update_client(db, ctx.entreprise_id, client_id, payload)
    return {
        "message": "Client mis à jour avec succès",
        "client": client_service.to_client_out(client),
    }


@router.delete("/{client_id}")
def delete_client(
    client_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    client_service.delete_client(db, ctx.entreprise_id, client_id)
    return {"message": "Client supprimé avec succès"}
