from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockflow.app.db.models.models_v1 import Entreprise
from stockflow.services.exceptions import EntrepriseNotFound, InvalidArgument

logger = logging.getLogger(__name__)


def _clean_email(email: str | None) -> str:
    if not email or not email.strip():
        raise InvalidArgument("email is required")
    return email.strip()


def get_entreprise(db: Session, email: str) -> Entreprise | None:
    email = _clean_email(email)
    return db.execute(select(Entreprise).where(Entreprise.email == email)).scalar_one_or_none()


def require_entreprise(db: Session, email: str) -> Entreprise:
    """Résout l'email en entreprise, sinon EntrepriseNotFound. Préalable à tout accès tenant."""
    ent = get_entreprise(db, email)
    if ent is None:
        logger.warning("Entreprise introuvable: email=%s", email)
        raise EntrepriseNotFound(email)
    return ent


def ensure_entreprise(db: Session, *, email: str, name: str | None = None) -> Entreprise:
    """
    Upsert par email (premier contact authentifié).

    - existe déjà -> renvoyée telle quelle
    - absente + name -> créée
    - absente sans name -> InvalidArgument
    """
    email = _clean_email(email)
    ent = get_entreprise(db, email)
    if ent:
        return ent

    if not name or not name.strip():
        raise InvalidArgument("name is required to create an entreprise")

    ent = Entreprise(email=email, name=name.strip())
    db.add(ent)
    try:
        db.commit()
    except IntegrityError:
        # création concurrente du même email : on relit le gagnant
        db.rollback()
        ent = get_entreprise(db, email)
        if ent is None:
            raise
        return ent

    db.refresh(ent)
    logger.info("Entreprise créée: id=%s email=%s", ent.id, email)
    return ent
