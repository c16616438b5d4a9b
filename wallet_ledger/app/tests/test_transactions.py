import uuid

import pytest
from fastapi.testclient import TestClient

from ..core.errors import LedgerValidationError
from ..models import AccountCreate, TransactionCreate
from ..services import AccountService, AccountStore, TransactionLedger


def _create_transaction(client: TestClient, account_id: str, kind: str, amount: int, **extra):
    payload = {"account_id": account_id, "kind": kind, "amount": amount, "date": "2024-01-02"}
    payload.update(extra)
    return client.post(
        "/transactions",
        json=payload,
        headers={"Idempotency-Key": str(uuid.uuid4())},
    )


def test_expense_debits_account(client: TestClient, create_account, balance_of) -> None:
    account = create_account("A", 1000)

    response = _create_transaction(client, account["id"], "expense", 50)
    assert response.status_code == 201
    body = response.json()
    assert body["kind"] == "expense"
    assert body["amount"] == 50
    assert balance_of(account["id"]) == 950


def test_income_credits_account(client: TestClient, create_account, balance_of) -> None:
    account = create_account("A", 1000)

    _create_transaction(client, account["id"], "income", 250, reason="Salary")
    assert balance_of(account["id"]) == 1250


def test_expense_may_overdraw(client: TestClient, create_account, balance_of) -> None:
    account = create_account("A", 10)

    assert _create_transaction(client, account["id"], "expense", 30).status_code == 201
    assert balance_of(account["id"]) == -20


def test_create_against_unknown_account_persists_nothing(client: TestClient) -> None:
    response = _create_transaction(client, str(uuid.uuid4()), "income", 10)
    assert response.status_code == 404
    assert client.get("/transactions").json() == []


def test_create_rejects_non_positive_amount(client: TestClient, create_account, balance_of) -> None:
    account = create_account("A", 100)

    assert _create_transaction(client, account["id"], "income", 0).status_code == 422
    assert _create_transaction(client, account["id"], "refund", 5).status_code == 422
    assert balance_of(account["id"]) == 100


def test_create_against_other_users_account_is_not_found(
    client: TestClient, create_account, balance_of
) -> None:
    theirs = create_account("Theirs", 100, headers={"X-User-Id": "user-2"})

    response = _create_transaction(client, theirs["id"], "expense", 10)
    assert response.status_code == 404
    snapshot = client.get(f"/accounts/{theirs['id']}", headers={"X-User-Id": "user-2"})
    assert snapshot.json()["balance"] == 100


def test_update_amount_reapplies_delta(client: TestClient, create_account, balance_of) -> None:
    account = create_account("A", 1000)
    transaction = _create_transaction(client, account["id"], "expense", 50).json()

    response = client.patch(f"/transactions/{transaction['id']}", json={"amount": 80})
    assert response.status_code == 200
    assert response.json()["amount"] == 80
    assert balance_of(account["id"]) == 920


def test_update_kind_flips_sign(client: TestClient, create_account, balance_of) -> None:
    account = create_account("A", 1000)
    transaction = _create_transaction(client, account["id"], "expense", 50).json()

    client.patch(f"/transactions/{transaction['id']}", json={"kind": "income"})
    assert balance_of(account["id"]) == 1050


def test_update_moves_effect_between_accounts(
    client: TestClient, create_account, balance_of
) -> None:
    first = create_account("First", 1000)
    second = create_account("Second", 500)
    transaction = _create_transaction(client, first["id"], "expense", 100).json()

    response = client.patch(
        f"/transactions/{transaction['id']}",
        json={"account_id": second["id"], "amount": 40},
    )
    assert response.status_code == 200
    assert response.json()["account_id"] == second["id"]
    assert balance_of(first["id"]) == 1000
    assert balance_of(second["id"]) == 460


def test_update_to_unknown_account_leaves_state(
    client: TestClient, create_account, balance_of
) -> None:
    account = create_account("A", 1000)
    transaction = _create_transaction(client, account["id"], "expense", 100).json()

    response = client.patch(
        f"/transactions/{transaction['id']}", json={"account_id": str(uuid.uuid4())}
    )
    assert response.status_code == 404
    assert balance_of(account["id"]) == 900
    assert client.get(f"/transactions/{transaction['id']}").json()["account_id"] == account["id"]


def test_update_cannot_clear_required_fields(client: TestClient, create_account) -> None:
    account = create_account("A", 1000)
    transaction = _create_transaction(client, account["id"], "expense", 100).json()

    response = client.patch(f"/transactions/{transaction['id']}", json={"amount": None})
    assert response.status_code == 400


def test_update_can_clear_category(client: TestClient, create_account) -> None:
    account = create_account("A", 1000)
    transaction = _create_transaction(
        client, account["id"], "expense", 100, category_id=str(uuid.uuid4())
    ).json()

    response = client.patch(f"/transactions/{transaction['id']}", json={"category_id": None})
    assert response.status_code == 200
    assert response.json()["category_id"] is None


def test_repeated_update_does_not_double_apply(
    client: TestClient, create_account, balance_of
) -> None:
    account = create_account("A", 1000)
    transaction = _create_transaction(client, account["id"], "expense", 100).json()

    for _ in range(3):
        client.patch(f"/transactions/{transaction['id']}", json={"amount": 150})
    assert balance_of(account["id"]) == 850


def test_delete_reverses_and_second_delete_is_not_found(
    client: TestClient, create_account, balance_of
) -> None:
    account = create_account("A", 1000)
    transaction = _create_transaction(client, account["id"], "expense", 100).json()

    assert client.delete(f"/transactions/{transaction['id']}").status_code == 204
    assert balance_of(account["id"]) == 1000

    assert client.delete(f"/transactions/{transaction['id']}").status_code == 404
    assert balance_of(account["id"]) == 1000


def test_create_idempotency(client: TestClient, create_account, balance_of) -> None:
    account = create_account("A", 1000)
    key = str(uuid.uuid4())
    payload = {"account_id": account["id"], "kind": "expense", "amount": 75, "date": "2024-01-02"}

    first = client.post("/transactions", json=payload, headers={"Idempotency-Key": key})
    second = client.post("/transactions", json=payload, headers={"Idempotency-Key": key})
    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json() == second.json()
    assert balance_of(account["id"]) == 925
    assert len(client.get("/transactions").json()) == 1

    payload["amount"] = 10
    conflict = client.post("/transactions", json=payload, headers={"Idempotency-Key": key})
    assert conflict.status_code == 409
    assert balance_of(account["id"]) == 925


def test_create_requires_idempotency_key(client: TestClient, create_account) -> None:
    account = create_account("A", 1000)
    response = client.post(
        "/transactions",
        json={"account_id": account["id"], "kind": "income", "amount": 5, "date": "2024-01-02"},
    )
    assert response.status_code == 422


def test_list_orders_newest_first(client: TestClient, create_account) -> None:
    account = create_account("A", 1000)
    older = _create_transaction(client, account["id"], "income", 1, date="2024-01-01").json()
    newer = _create_transaction(client, account["id"], "income", 2, date="2024-02-01").json()
    same_day_later = _create_transaction(client, account["id"], "income", 3, date="2024-02-01").json()

    ids = [t["id"] for t in client.get("/transactions").json()]
    assert ids == [same_day_later["id"], newer["id"], older["id"]]


def test_service_rejects_non_positive_amount_without_writes(session, scope) -> None:
    account = AccountService(session).create_account(
        scope, AccountCreate(name="A", opening_balance=100)
    )
    ledger = TransactionLedger(session)
    payload = TransactionCreate.model_construct(
        account_id=account.id, kind="expense", amount=0, category_id=None, reason=None,
        date=account.created_at.date(),
    )

    with pytest.raises(LedgerValidationError):
        ledger.create(scope, payload, "key-1")
    assert AccountStore(session).get_balance(account.id) == 100
    assert ledger.list(scope) == []
