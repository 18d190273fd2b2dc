from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.notifications.gcm.provider import GcmProvider
from src.utils.time import fixed_clock

TEST_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeGcmTransport:
    """Records every send and answers with ``callback_args`` when set.

    Without ``callback_args`` every token is reported as delivered.
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.callback_args: tuple | None = None

    def send(self, message, tokens, callback) -> None:
        self.calls.append((message, list(tokens)))
        if self.callback_args is not None:
            callback(*self.callback_args)
            return
        results = [{"message_id": f"msg-{index}"} for index, _ in enumerate(tokens)]
        callback(None, {"success": len(results), "failure": 0, "results": results})

    def first_call_args(self) -> tuple:
        return self.calls[0]


def _gcm_result(results: list[dict]) -> dict:
    return {
        "multicast_id": 5504081219335647631,
        "success": len([item for item in results if item.get("message_id")]),
        "failure": len([item for item in results if item.get("error")]),
        "canonical_ids": 0,
        "results": results,
    }


@pytest.fixture
def gcm_result():
    return _gcm_result


@pytest.fixture
def fake_transport() -> FakeGcmTransport:
    return FakeGcmTransport()


@pytest.fixture
def clock():
    return fixed_clock(TEST_NOW)


@pytest.fixture
def provider(fake_transport, clock) -> GcmProvider:
    return GcmProvider("a-test-server-key", transport=fake_transport, clock=clock)


@pytest.fixture
def db_session(tmp_path):
    from src.models import tables  # noqa: F401
    from src.models.db import Base

    engine = create_engine(f"sqlite:///{tmp_path / 'unit.db'}", future=True)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_ctx(tmp_path, monkeypatch, provider, fake_transport) -> Generator[dict, None, None]:
    import src.models.db as db_module
    from src.api.routes import get_push_providers
    from src.models import tables  # noqa: F401
    from src.models.db import Base

    db_file = tmp_path / "test.db"
    test_url = f"sqlite:///{db_file}"
    engine = create_engine(test_url, connect_args={"check_same_thread": False}, future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    monkeypatch.setattr(db_module, "engine", engine, raising=False)
    monkeypatch.setattr(db_module, "SessionLocal", TestingSessionLocal, raising=False)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    from src.app import app

    app.dependency_overrides[get_push_providers] = lambda: {"android": provider}
    with TestClient(app) as client:
        yield {
            "client": client,
            "session_local": TestingSessionLocal,
            "engine": engine,
            "transport": fake_transport,
        }
    app.dependency_overrides.clear()

    Base.metadata.drop_all(bind=engine)
