from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.reports import DashboardStats
from ..services import reports as report_service
from ..services.accounts import AuthContext
from .deps import get_current_entreprise

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/dashboard", response_model=DashboardStats)
def dashboard(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_entreprise),
):
    return report_service.dashboard_stats(db, ctx.entreprise_id)
