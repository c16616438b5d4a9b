from typing import Any, Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from ..core.db import create_engine_for_url, get_engine, get_session, set_engine
from ..core.scope import LedgerScope
from ..main import app

USER_HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def engine(tmp_path):
    test_engine = create_engine_for_url(f"sqlite:///{tmp_path / 'test.db'}")
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def scope() -> LedgerScope:
    return LedgerScope(owner_id="user-1")


@pytest.fixture
def client(engine) -> TestClient:
    original_engine = get_engine()
    set_engine(engine)

    def _get_session_override():
        with Session(engine) as db_session:
            yield db_session

    app.dependency_overrides[get_session] = _get_session_override

    with TestClient(app, headers=USER_HEADERS) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_engine(original_engine)


@pytest.fixture
def create_account(client: TestClient) -> Callable[..., dict[str, Any]]:
    def _create(
        name: str,
        opening_balance: int = 0,
        currency: str = "NPR",
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        response = client.post(
            "/accounts",
            json={"name": name, "opening_balance": opening_balance, "currency": currency},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def balance_of(client: TestClient) -> Callable[[str], int]:
    def _balance(account_id: str) -> int:
        response = client.get(f"/accounts/{account_id}")
        assert response.status_code == 200, response.text
        return response.json()["balance"]

    return _balance

