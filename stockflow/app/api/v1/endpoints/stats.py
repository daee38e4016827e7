from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise, get_settings_dep
from stockflow.app.core.config import Settings
from stockflow.app.db.models.models_v1 import Entreprise
from stockflow.services import stats

router = APIRouter(prefix="/stats")


@router.get("/overview")
def overview(ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    return stats.get_overview_stats(db, entreprise_id=ent.id)


@router.get("/categories")
def category_distribution(ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    return stats.get_category_distribution(db, entreprise_id=ent.id)


@router.get("/stock-summary")
def stock_summary(
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    return stats.get_stock_summary(
        db,
        entreprise_id=ent.id,
        low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
    )
