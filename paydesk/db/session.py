from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from paydesk.core.config import settings

Base = declarative_base()

def make_engine(db_url: str = None, echo: bool = False) -> Engine:
    db_url = db_url or settings.DB_URL
    is_sqlite = db_url.startswith("sqlite")
    # Use connect_args for SQLite to allow multithreading in simple dev setups
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    if is_sqlite and ":memory:" not in db_url and db_url.startswith("sqlite:///"):
        Path(db_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(db_url, echo=echo, future=True, connect_args=connect_args)
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine

def _enable_sqlite_savepoints(engine: Engine):
    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT / ROLLBACK TO; take over transaction demarcation instead.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

_default_engine = None

def default_engine() -> Engine:
    """Engine for settings.DB_URL, created on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = make_engine()
    return _default_engine

def init_db(bind: Engine = None):
    # Import models here so they are registered on Base
    import paydesk.db.models as _models  # noqa: F401
    Base.metadata.create_all(bind=bind or default_engine())
