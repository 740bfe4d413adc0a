from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dropiq.config import Config

engine = None
SessionLocal = sessionmaker(autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def configure_engine(database_url: str = Config.DATABASE_URL, echo: bool = Config.SQLALCHEMY_ECHO):
    global engine
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    if engine is not None:
        engine.dispose()
    engine = create_engine(database_url, echo=echo, future=True, connect_args=connect_args)
    SessionLocal.configure(bind=engine)
    return engine


def get_engine():
    if engine is None:
        return configure_engine()
    return engine


def get_session():
    get_engine()
    return SessionLocal()
