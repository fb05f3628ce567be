# db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from settings import settings


def make_engine(url: str):
    kw = {"future": True, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool
        kw["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kw["poolclass"] = StaticPool
    return create_engine(url, **kw)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
Base = declarative_base()


def init_db(bind=None):
    from models_history import AnalysisRecord  # ensure model is imported
    Base.metadata.create_all(bind=bind or engine)
