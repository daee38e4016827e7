from __future__ import annotations

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stockflow.app.db.base import Base

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    url = url.strip()
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _enable_sqlite_serialized_writes(engine: Engine) -> None:
    """
    SQLite ignore FOR UPDATE.
    On ouvre chaque transaction en BEGIN IMMEDIATE pour que deux écritures
    concurrentes se sérialisent au lieu de lire un stock périmé.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # on reprend la main sur le BEGIN émis par pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, *, echo: bool = False, pool_size: int = 5, max_overflow: int = 10) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _enable_sqlite_serialized_writes(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=1800,
    )


class Database:
    """
    Client de stockage construit explicitement.

    Créé au démarrage de l'application (lifespan), fermé à l'arrêt.
    Les endpoints reçoivent une Session par requête via get_db.
    """

    def __init__(self, url: str, *, echo: bool = False, pool_size: int = 5, max_overflow: int = 10):
        self.url = normalize_database_url(url)
        self.engine = build_engine(self.url, echo=echo, pool_size=pool_size, max_overflow=max_overflow)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)
        logger.info("Base de données initialisée: %s", self.engine.url.render_as_string(hide_password=True))

    def session(self) -> Session:
        return self.SessionLocal()

    def create_all(self) -> None:
        # import pour enregistrer les tables sur Base.metadata
        from stockflow.app.db.models import models_v1  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        from stockflow.app.db.models import models_v1  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Pool de connexions fermé")
