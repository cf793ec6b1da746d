from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.contracts import (
    ContractCreate,
    ContractRenew,
    ContractUpdate,
    PaymentUpdate,
    PremiumBreakdownOut,
    PremiumQuoteRequest,
)
from ..services import contracts as contract_service
from ..services.accounts import AuthContext
from ..services.premium import compute_breakdown
from .deps import get_current_entreprise

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.get("")
def list_contracts(
    statut: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    rows = contract_service.list_contracts(db, ctx.entreprise_id, statut=statut, search=search)
    return {"contrats": [contract_service.to_contract_out(c) for c in rows]}


@router.post("/quote", response_model=PremiumBreakdownOut)
def quote_premium(
    payload: PremiumQuoteRequest,
    _: AuthContext = Depends(get_current_entreprise),
):
    """Premium breakdown for a net premium, without saving anything."""
    return PremiumBreakdownOut.from_breakdown(compute_breakdown(payload.net_premium))


@router.get("/{contrat_id}")
def get_contract(
    contrat_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    contrat = contract_service.get_contract(db, ctx.entreprise_id, contrat_id)
    return {"contrat": contract_service.to_contract_out(contrat)}


@router.post("", status_code=201)
def create_contract(
    payload: ContractCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    contrat = contract_service.create_contract(db, ctx.entreprise_id, payload)
    return {
        "message": "Contrat créé avec succès",
        "contrat": contract_service.to_contract_out(contrat),
    }


@router.post("/{contrat_id}/renew")
def renew_contract(
    contrat_id: int,
    payload: ContractRenew | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    contrat = contract_service.renew_contract(db, ctx.entreprise_id, contrat_id, payload or ContractRenew())
    return {
        "message": "Contrat renouvelé avec succès",
        "contrat": contract_service.to_contract_out(contrat),
    }


@router.put("/{contrat_id}")
def update_contract(
    contrat_id: int,
    payload: ContractUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    contrat = contract_service.update_contract(db, ctx.entreprise_id, contrat_id, payload)
    return {
        "message": "Contrat mis à jour avec succès",
        "contrat": contract_service.to_contract_out(contrat),
    }


@router.put("/{contrat_id}/payment")
def update_payment(
    contrat_id: int,
    payload: PaymentUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    contrat = contract_service.update_payment(db, ctx.entreprise_id, contrat_id, payload)
    return {
        "message": "Paiement mis à jour avec succès",
        "contrat": contract_service.to_contract_out(contrat),
    }


@router.delete("/{contrat_id}")
def delete_contract(
    contrat_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    contract_service.delete_contract(db, ctx.entreprise_id, contrat_id)
    return {"message": "Contrat supprimé avec succès"}
