from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stockflow.services.exceptions import Conflict, StockflowError, StorageError

logger = logging.getLogger(__name__)


def _ctx(context: dict) -> str:
    return " ".join(f"{k}={v}" for k, v in context.items())


@contextmanager
def unit_of_work(db: Session, operation: str, **context) -> Iterator[Session]:
    """
    Une écriture = une transaction.

    - commit si le bloc se termine normalement
    - rollback sur toute erreur, rien de partiel n'est conservé
    - IntegrityError -> Conflict, autre SQLAlchemyError -> StorageError
    """
    try:
        yield db
        db.commit()
    except StockflowError as exc:
        db.rollback()
        logger.warning("%s rejeté (%s): %s", operation, _ctx(context), exc.message)
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning("%s en conflit (%s): %s", operation, _ctx(context), exc.orig)
        raise Conflict(f"{operation} violates a data constraint") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s: erreur de stockage (%s)", operation, _ctx(context))
        raise StorageError(f"{operation} could not be committed") from exc
    except Exception:
        db.rollback()
        logger.exception("%s: erreur inattendue (%s)", operation, _ctx(context))
        raise
