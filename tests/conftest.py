import os
from typing import Callable, Dict, Generator, List

import pytest

os.environ.setdefault("DATABASE_ALLOW_NON_POSTGRES", "1")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_URL", os.getenv("DATABASE_URL", os.environ["TEST_DATABASE_URL"]))
os.environ["EVENTLOG_URL"] = ""

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

import database as database_module  # noqa: E402
from database import Base  # noqa: E402


def _resolve_test_database_url() -> str:
    return os.getenv("TEST_DATABASE_URL") or os.getenv("DATABASE_URL") or "sqlite+pysqlite:///:memory:"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    import models  # noqa: F401

    database_url = _resolve_test_database_url()
    test_engine = create_engine(database_url, **database_module.engine_options(database_url))

    session_factory = sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)
    original_session_local = database_module.SessionLocal
    original_engine = database_module.engine
    database_module.SessionLocal = session_factory
    database_module.engine = test_engine
    try:
        yield test_engine
    finally:
        database_module.SessionLocal = original_session_local
        database_module.engine = original_engine
        test_engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=engine)
    session = database_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def captured_events(monkeypatch: pytest.MonkeyPatch) -> List[Dict[str, object]]:
    """Record event log posts instead of sending them."""
    from services import eventlog_client

    captured: List[Dict[str, object]] = []

    def fake_create_event(log_key: str, event: Dict[str, object], *, base_url=None):
        captured.append({"log_key": log_key, "event": event})
        return eventlog_client.EventDeliveryResult(status="delivered", attempts=1)

    monkeypatch.setattr(eventlog_client, "create_event", fake_create_event)
    return captured


@pytest.fixture()
def metadata_of() -> Callable[[Dict[str, object]], Dict[str, str]]:
    def _flatten(event: Dict[str, object]) -> Dict[str, str]:
        return {entry["key"]: entry["value"] for entry in event["metadata"]}  # type: ignore[index]

    return _flatten
