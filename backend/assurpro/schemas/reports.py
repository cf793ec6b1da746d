from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from ..services.premium import Bordereau
from .contracts import PremiumBreakdownOut


class DashboardStats(BaseModel):
    clients_actifs: int
    contrats_actifs: int
    renouvellements_a_venir: int
    expires_ce_mois: int


class MonthCount(BaseModel):
    month: str
    count: int


class TypeCount(BaseModel):
    type: str
    count: int


class ReportContractRow(BaseModel):
    numero_contrat: str
    montant: float
    date_debut: date
    date_fin: date
    statut: str
    type_contrat: str
    client_nom: str
    client_prenom: str
    vehicule_immatriculation: str
    vehicule_marque: str
    vehicule_modele: str


class ReportSummary(BaseModel):
    filter: str
    total_revenue: float
    total_contracts: int
    total_clients: int
    renewal_rate: float
    contracts_evolution: List[MonthCount]
    contract_type_distribution: List[TypeCount]
    detailed_contracts: List[ReportContractRow]


class BordereauLineOut(BaseModel):
    index: int
    numero_police: str
    client_nom: str
    immatriculation: str
    date_effet: date
    date_echeance: date
    breakdown: PremiumBreakdownOut


class BordereauOut(BaseModel):
    code: Optional[str] = None
    lines: List[BordereauLineOut]
    totals: PremiumBreakdownOut

    @classmethod
    def from_bordereau(cls, b: Bordereau) -> "BordereauOut":
        t = b.totals
        return cls(
            code=b.code,
            lines=[
                BordereauLineOut(
                    index=line.index,
                    numero_police=line.numero_police,
                    client_nom=line.client_nom,
                    immatriculation=line.immatriculation,
                    date_effet=line.date_effet,
                    date_echeance=line.date_echeance,
                    breakdown=PremiumBreakdownOut.from_breakdown(line.breakdown),
                )
                for line in b.lines
            ],
            totals=PremiumBreakdownOut(
                net_premium=float(t.net_premium),
                fixed_fee=float(t.fixed_fee),
                tax=float(t.tax),
                levy=float(t.levy),
                gross_premium=float(t.gross_premium),
                commission=float(t.commission),
                net_payable=float(t.net_payable),
            ),
        )
