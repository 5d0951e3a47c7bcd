from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker


def build_engine(db_url: str) -> Engine:
    return create_engine(
        db_url,
        connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {},
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_session_factory(request: Request) -> sessionmaker[Session]:
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        raise RuntimeError("Database not initialized. Did app startup run?")
    return factory


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency.

    Queries on ``Document`` are scoped to what the caller may see by the
    ``do_orm_execute`` filter in ``docportal.db.filters``, which reads
    ``Session.info["authz"]``. Handlers keep writing plain ``select(Document)``.
    """

    db = get_session_factory(request)()
    try:
        authz = getattr(getattr(request, "state", None), "authz", None)
        if authz is not None:
            db.info["authz"] = authz
        yield db
    finally:
        db.close()
