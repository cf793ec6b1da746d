# backend/assurpro/schemas/contracts.py
from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..services.premium import PremiumBreakdown

ContractStatusLiteral = Literal["actif", "expire", "renouvele", "annule"]


def _blank_to_none(v):
    if isinstance(v, str):
        return v.strip() or None
    return v


# ---------------------------------------------------------------------------
# Premium breakdown
# ---------------------------------------------------------------------------

class PremiumBreakdownOut(BaseModel):
    net_premium: float
    fixed_fee: float
    tax: float
    levy: float
    gross_premium: float
    commission: float
    net_payable: float

    @classmethod
    def from_breakdown(cls, b: PremiumBreakdown) -> "PremiumBreakdownOut":
        return cls(
            net_premium=float(b.net_premium),
            fixed_fee=float(b.fixed_fee),
            tax=float(b.tax),
            levy=float(b.levy),
            gross_premium=float(b.gross_premium),
            commission=float(b.commission),
            net_payable=float(b.net_payable),
        )


class PremiumQuoteRequest(BaseModel):
    net_premium: Decimal = Field(gt=0)


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

class ContractCreate(BaseModel):
    client_id: int
    vehicule_id: int
    type_contrat: str
    duree_mois: int = Field(gt=0)
    date_debut: date
    montant: Decimal = Field(gt=0)
    numero_police: str | None = None

    @field_validator("numero_police", mode="before")
    @classmethod
    def _blank_numero(cls, v):
        return _blank_to_none(v)

    @field_validator("type_contrat")
    @classmethod
    def _type_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("type_contrat must not be empty")
        return v


class ContractRenew(BaseModel):
    duree_mois: int | None = Field(default=None, gt=0)
    montant: Decimal | None = Field(default=None, gt=0)


class ContractUpdate(BaseModel):
    type_contrat: str | None = None
    duree_mois: int | None = Field(default=None, gt=0)
    date_debut: date | None = None
    montant: Decimal | None = Field(default=None, gt=0)
    statut: ContractStatusLiteral | None = None

    @field_validator("type_contrat", mode="before")
    @classmethod
    def _blank_type(cls, v):
        return _blank_to_none(v)


class PaymentUpdate(BaseModel):
    montant_paye: Decimal | None = None
    montant_restant: Decimal | None = None


class ContractOut(BaseModel):
    id: int
    client_id: int
    vehicule_id: int
    entreprise_id: UUID
    numero_contrat: str
    type_contrat: str
    duree_mois: int
    date_debut: date
    date_fin: date
    montant: float
    montant_paye: float
    montant_restant: float
    statut: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    client_nom: str | None = None
    client_prenom: str | None = None
    client_telephone: str | None = None
    client_email: str | None = None
    marque: str | None = None
    modele: str | None = None
    immatriculation: str | None = None
    annee: int | None = None
    couleur: str | None = None

    jours_restants: int
    est_expire: bool
    alerte_renouvellement: bool
    breakdown: PremiumBreakdownOut | None = None


# ---------------------------------------------------------------------------
# Clients & vehicles
# ---------------------------------------------------------------------------

class VehiculeIn(BaseModel):
    immatriculation: str
    marque: str | None = None
    modele: str | None = None

    @field_validator("immatriculation")
    @classmethod
    def _plate_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("immatriculation is required")
        return v


class VehiculeOut(BaseModel):
    id: int
    client_id: int
    marque: str
    modele: str
    immatriculation: str | None = None
    annee: int | None = None
    couleur: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ClientContractIn(BaseModel):
    numero_police: str
    date_debut: date
    date_fin: date
    montant: Decimal = Field(gt=0)
    type_contrat: str | None = None
    duree_mois: int | None = Field(default=None, gt=0)
    montant_paye: Decimal = Decimal("0")
    montant_restant: Decimal = Decimal("0")

    @field_validator("numero_police")
    @classmethod
    def _numero_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("numero_police is required")
        return v

    @field_validator("montant_paye", "montant_restant", mode="before")
    @classmethod
    def _none_to_zero(cls, v):
        return Decimal("0") if v in (None, "") else v


class ClientCreate(BaseModel):
    nom: str
    telephone: str
    vehicule: VehiculeIn
    contrat: ClientContractIn

    @field_validator("nom", "telephone")
    @classmethod
    def _required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nom et téléphone sont requis")
        return v


class ClientUpdate(BaseModel):
    nom: str | None = None
    prenom: str | None = None
    telephone: str | None = None
    vehicule: VehiculeIn | None = None
    contrat: ClientContractIn | None = None

    @field_validator("nom", "prenom", "telephone", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)


class ClientContractSummary(BaseModel):
    id: int
    numero_contrat: str
    date_fin: date
    statut: str

    model_config = ConfigDict(from_attributes=True)


class ClientOut(BaseModel):
    id: int
    entreprise_id: UUID
    nom: str
    prenom: str
    telephone: str
    email: str | None = None
    adresse: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    vehicules: list[VehiculeOut] = []
    contrats: list[ClientContractSummary] = []
    nombre_contrats: int = 0
    dernier_contrat: date | None = None
    client_statut: str = "inactif"


class ClientCreated(BaseModel):
    message: str
    client: ClientOut
    vehicule_id: int
    contrat_id: int
