from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from promptstudio.config import get_config


class Base(DeclarativeBase):
    pass


def make_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across sessions"""
    if url in ('sqlite://', 'sqlite:///:memory:'):
        return create_engine(
            url,
            echo=echo,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


engine = make_engine(get_config().DATABASE_URL, echo=get_config().DATABASE_ECHO)
SessionLocal = make_session_factory(engine)


def init_db(bind: Optional[Engine] = None):
    """Create tables that do not exist yet"""
    # Register models on Base.metadata
    import promptstudio.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
