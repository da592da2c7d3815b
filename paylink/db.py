from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from paylink.config import settings


def make_engine(url: str) -> Engine:
    """
    Build an engine for DATABASE_URL.

    SQLite connections are shared across the request threadpool, and an
    in-memory database keeps a single connection so every session sees it.
    """
    kwargs = {"future": True, "echo": False}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_recycle"] = 300
    return create_engine(url, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    # Records handed out by the store must stay readable after the session closes
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


# -----------------------
# SQLAlchemy Engine
# -----------------------
engine = make_engine(settings.DATABASE_URL.strip())

SessionLocal = make_session_factory(engine)

# Base for ALL models
Base = declarative_base()


def init_db(bind: Engine = engine) -> None:
    """Create tables that do not exist yet."""
    from paylink import models  # noqa: F401  (register tables on Base.metadata)

    Base.metadata.create_all(bind=bind)
