from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health")


@router.get("")
def health(request: Request):
    try:
        db_ok = request.app.state.db.ping()
    except SQLAlchemyError:
        logger.exception("Ping base de données en échec")
        db_ok = False
    return {"status": "ok" if db_ok else "degraded", "database": db_ok}
