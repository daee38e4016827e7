from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # le pool SQLAlchemy est trop bavard en DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
