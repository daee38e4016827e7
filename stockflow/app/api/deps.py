from __future__ import annotations

from typing import Generator

from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from stockflow.app.core.config import Settings
from stockflow.app.db.models.models_v1 import Entreprise
from stockflow.services.images import ImageStore
from stockflow.services.tenants import require_entreprise


def get_db(request: Request) -> Generator:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_image_store(request: Request) -> ImageStore:
    return request.app.state.image_store


def get_entreprise(
    email: str = Query(..., min_length=1, description="Email de l'entreprise (tenant)"),
    db: Session = Depends(get_db),
) -> Entreprise:
    return require_entreprise(db, email)
