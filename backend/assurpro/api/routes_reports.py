from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.reports import BordereauOut, ReportSummary
from ..services import reports as report_service
from ..services.accounts import AuthContext
from .deps import get_current_entreprise

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=ReportSummary)
def summary(
    filter: Literal["all", "month", "quarter", "year"] = "all",
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    return report_service.report_summary(db, ctx.entreprise_id, filter)


@router.get("/bordereau", response_model=BordereauOut)
def bordereau(
    statut: Literal["actif", "expire", "renouvele", "annule"] | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    return BordereauOut.from_bordereau(report_service.company_bordereau(db, ctx.entreprise_id, statut))
