# backend/assurpro/services/reports.py
"""
Read-only aggregates for the dashboard, the reports page and the
settlement statement.
"""
from __future__ import annotations

import calendar
from collections import Counter
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..core.config import get_settings
from ..models.client import Client
from ..models.contrat import Contrat, ContractStatus
from ..schemas.reports import (
    DashboardStats,
    MonthCount,
    ReportContractRow,
    ReportSummary,
    TypeCount,
)
from .errors import InvalidInputError
from .premium import Bordereau, BordereauInput, build_bordereau

EVOLUTION_MONTHS = 6
REPORT_FILTERS = ("all", "month", "quarter", "year")


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def period_bounds(filter_name: str, today: date) -> tuple[date, date] | None:
    """Inclusive calendar bounds for a report filter; None means no bound."""
    if filter_name == "all":
        return None
    if filter_name == "month":
        return date(today.year, today.month, 1), _month_end(today.year, today.month)
    if filter_name == "quarter":
        first = 3 * ((today.month - 1) // 3) + 1
        return date(today.year, first, 1), _month_end(today.year, first + 2)
    if filter_name == "year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    raise InvalidInputError(f"Filtre inconnu: {filter_name}")


def _day_range(start: date, end: date) -> tuple[datetime, datetime]:
    """Timestamp range covering whole days, end exclusive."""
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


def dashboard_stats(
    db: Session,
    entreprise_id: UUID,
    today: date | None = None,
    alert_days: int | None = None,
) -> DashboardStats:
    today = today or date.today()
    alert_days = get_settings().RENEWAL_ALERT_DAYS if alert_days is None else alert_days
    active = (
        db.query(func.count(Contrat.id))
        .filter(Contrat.entreprise_id == entreprise_id, Contrat.statut == ContractStatus.ACTIF.value)
    )
    month_start = date(today.year, today.month, 1)
    month_end = _month_end(today.year, today.month)

    return DashboardStats(
        clients_actifs=db.query(func.count(Client.id)).filter(Client.entreprise_id == entreprise_id).scalar() or 0,
        contrats_actifs=active.scalar() or 0,
        renouvellements_a_venir=active.filter(
            Contrat.date_fin >= today,
            Contrat.date_fin <= today + timedelta(days=alert_days),
        ).scalar() or 0,
        expires_ce_mois=active.filter(
            Contrat.date_fin >= month_start,
            Contrat.date_fin <= month_end,
        ).scalar() or 0,
    )


def renewal_rate(db: Session, entreprise_id: UUID) -> float:
    """Share of closed contracts that were renewed, in percent."""
    counts = dict(
        db.query(Contrat.statut, func.count(Contrat.id))
        .filter(
            Contrat.entreprise_id == entreprise_id,
            Contrat.statut.in_([ContractStatus.RENOUVELE.value, ContractStatus.EXPIRE.value]),
        )
        .group_by(Contrat.statut)
        .all()
    )
    renewed = counts.get(ContractStatus.RENOUVELE.value, 0)
    expired = counts.get(ContractStatus.EXPIRE.value, 0)
    if renewed + expired == 0:
        return 0.0
    return round(100.0 * renewed / (renewed + expired), 2)


def _contracts_evolution(db: Session, entreprise_id: UUID, today: date) -> list[MonthCount]:
    evolution = []
    for delta in range(-(EVOLUTION_MONTHS - 1), 1):
        year, month = _shift_month(today.year, today.month, delta)
        lo, hi = _day_range(date(year, month, 1), _month_end(year, month))
        count = (
            db.query(func.count(Contrat.id))
            .filter(
                Contrat.entreprise_id == entreprise_id,
                Contrat.created_at >= lo,
                Contrat.created_at < hi,
            )
            .scalar()
        )
        evolution.append(MonthCount(month=f"{year:04d}-{month:02d}", count=count or 0))
    return evolution


def report_summary(
    db: Session,
    entreprise_id: UUID,
    filter_name: str = "all",
    today: date | None = None,
) -> ReportSummary:
    today = today or date.today()
    bounds = period_bounds(filter_name, today)

    revenue_q = db.query(Contrat.montant).filter(
        Contrat.entreprise_id == entreprise_id,
        Contrat.statut == ContractStatus.ACTIF.value,
    )
    contracts_q = db.query(func.count(Contrat.id)).filter(Contrat.entreprise_id == entreprise_id)
    clients_q = db.query(func.count(Client.id)).filter(Client.entreprise_id == entreprise_id)
    detail_q = (
        db.query(Contrat)
        .options(joinedload(Contrat.client), joinedload(Contrat.vehicule))
        .filter(Contrat.entreprise_id == entreprise_id)
    )

    if bounds is not None:
        start, end = bounds
        lo, hi = _day_range(start, end)
        revenue_q = revenue_q.filter(Contrat.date_debut >= start, Contrat.date_fin <= end)
        contracts_q = contracts_q.filter(Contrat.created_at >= lo, Contrat.created_at < hi)
        clients_q = clients_q.filter(Client.created_at >= lo, Client.created_at < hi)
        detail_q = detail_q.filter(Contrat.date_debut >= start, Contrat.date_fin <= end)

    total_revenue = sum((Decimal(str(m or 0)) for (m,) in revenue_q.all()), Decimal("0"))

    types = Counter(
        t or "Autre"
        for (t,) in db.query(Contrat.type_contrat).filter(Contrat.entreprise_id == entreprise_id).all()
    )

    rows = []
    for c in detail_q.order_by(Contrat.date_debut.desc(), Contrat.id.desc()).all():
        rows.append(
            ReportContractRow(
                numero_contrat=c.numero_contrat,
                montant=float(c.montant or 0),
                date_debut=c.date_debut,
                date_fin=c.date_fin,
                statut=c.statut,
                type_contrat=c.type_contrat,
                client_nom=c.client.nom if c.client else "",
                client_prenom=(c.client.prenom or "") if c.client else "",
                vehicule_immatriculation=(c.vehicule.immatriculation or "") if c.vehicule else "",
                vehicule_marque=(c.vehicule.marque or "") if c.vehicule else "",
                vehicule_modele=(c.vehicule.modele or "") if c.vehicule else "",
            )
        )

    return ReportSummary(
        filter=filter_name,
        total_revenue=float(total_revenue),
        total_contracts=contracts_q.scalar() or 0,
        total_clients=clients_q.scalar() or 0,
        renewal_rate=renewal_rate(db, entreprise_id),
        contracts_evolution=_contracts_evolution(db, entreprise_id, today),
        contract_type_distribution=[TypeCount(type=t, count=n) for t, n in types.items()],
        detailed_contracts=rows,
    )


def company_bordereau(db: Session, entreprise_id: UUID, statut: str | None = None) -> Bordereau:
    """Settlement statement over the company's contracts, oldest effective date first."""
    query = (
        db.query(Contrat)
        .options(joinedload(Contrat.client), joinedload(Contrat.vehicule))
        .filter(Contrat.entreprise_id == entreprise_id)
    )
    if statut:
        query = query.filter(Contrat.statut == statut)

    entries = [
        BordereauInput(
            numero_police=c.numero_contrat,
            client_nom=c.client.nom if c.client else "",
            immatriculation=(c.vehicule.immatriculation or "") if c.vehicule else "",
            date_effet=c.date_debut,
            date_echeance=c.date_fin,
            net_premium=Decimal(str(c.montant or 0)),
        )
        for c in query.order_by(Contrat.date_debut.asc(), Contrat.id.asc()).all()
    ]
    return build_bordereau(entries)
