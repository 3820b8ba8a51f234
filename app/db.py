# app/db.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool
from app.settings import settings

class Base(DeclarativeBase):
    pass

def make_engine(url: str) -> Engine:
    is_sqlite = url.startswith("sqlite:")
    if is_sqlite:
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        # SQLite: single-file DB for local dev; in-memory DBs must share one connection
        engine = create_engine(
            url,
            future=True,
            poolclass=StaticPool if in_memory else NullPool,
            connect_args={"check_same_thread": False},  # needed for Uvicorn+Celery in dev
        )
        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()
        return engine
    else:
        # MySQL
        return create_engine(
            url,
            future=True,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=5,
            pool_recycle=1800,                     # recycle every 30 min
            connect_args={"connection_timeout": 10}  # fast fail
        )

def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)
