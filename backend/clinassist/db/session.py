from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinassist.core.config import settings
from clinassist.db.base import Base


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    # models must be imported so their tables register on Base.metadata
    from clinassist.models import article, chat_message, clinical_analysis, conversation  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
