import uuid

from fastapi.testclient import TestClient


def _create_transfer(client: TestClient, source_id: str, dest_id: str, amount: int, **extra):
    payload = {
        "from_account_id": source_id,
        "to_account_id": dest_id,
        "amount": amount,
        "date": "2024-01-01",
    }
    payload.update(extra)
    return client.post(
        "/transfers",
        json=payload,
        headers={"Idempotency-Key": str(uuid.uuid4())},
    )


def test_create_then_delete_restores_balances(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)

    response = _create_transfer(client, a["id"], b["id"], 200, description="Rent share")
    assert response.status_code == 201
    transfer = response.json()
    assert transfer["status"] == "completed"
    assert transfer["description"] == "Rent share"
    assert balance_of(a["id"]) == 800
    assert balance_of(b["id"]) == 700

    assert client.delete(f"/transfers/{transfer['id']}").status_code == 204
    assert balance_of(a["id"]) == 1000
    assert balance_of(b["id"]) == 500


def test_update_amount_moves_exact_difference(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    response = client.patch(f"/transfers/{transfer['id']}", json={"amount": 300})
    assert response.status_code == 200
    assert response.json()["amount"] == 300
    assert balance_of(a["id"]) == 700
    assert balance_of(b["id"]) == 800


def test_update_delta_ignores_unrelated_history(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    c = create_account("C", 0)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    _create_transfer(client, a["id"], c["id"], 100)
    _create_transfer(client, b["id"], c["id"], 50)
    client.post(
        "/transactions",
        json={"account_id": a["id"], "kind": "income", "amount": 30, "date": "2024-01-05"},
        headers={"Idempotency-Key": str(uuid.uuid4())},
    )
    before_a, before_b = balance_of(a["id"]), balance_of(b["id"])

    client.patch(f"/transfers/{transfer['id']}", json={"amount": 120})
    assert balance_of(a["id"]) - before_a == 200 - 120
    assert balance_of(b["id"]) - before_b == 120 - 200


def test_insufficient_funds_leaves_balances(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)

    response = _create_transfer(client, a["id"], b["id"], 2000)
    assert response.status_code == 409
    assert response.json()["detail"] == "Insufficient funds for transfer"
    assert balance_of(a["id"]) == 1000
    assert balance_of(b["id"]) == 500
    assert client.get("/transfers").json() == []


def test_transfer_of_entire_balance_is_allowed(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 0)

    assert _create_transfer(client, a["id"], b["id"], 1000).status_code == 201
    assert balance_of(a["id"]) == 0


def test_transfer_rejects_self_transfer(client: TestClient, create_account) -> None:
    account = create_account("George", 500)

    response = _create_transfer(client, account["id"], account["id"], 100)
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot transfer to the same account"


def test_transfer_rejects_currency_mismatch(
    client: TestClient, create_account, balance_of
) -> None:
    rupees = create_account("Rupees", 1000, currency="NPR")
    dollars = create_account("Dollars", 0, currency="USD")

    response = _create_transfer(client, rupees["id"], dollars["id"], 100)
    assert response.status_code == 400
    assert balance_of(rupees["id"]) == 1000


def test_transfer_to_unknown_account_is_not_found(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)

    response = _create_transfer(client, a["id"], str(uuid.uuid4()), 100)
    assert response.status_code == 404
    assert balance_of(a["id"]) == 1000


def test_update_rechecks_funds_after_reversal(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    # Post-reversal A holds 1000, so 1000 fits but 1001 does not.
    rejected = client.patch(f"/transfers/{transfer['id']}", json={"amount": 1001})
    assert rejected.status_code == 409
    assert balance_of(a["id"]) == 800
    assert balance_of(b["id"]) == 700
    assert client.get(f"/transfers/{transfer['id']}").json()["amount"] == 200

    accepted = client.patch(f"/transfers/{transfer['id']}", json={"amount": 1000})
    assert accepted.status_code == 200
    assert balance_of(a["id"]) == 0
    assert balance_of(b["id"]) == 1500


def test_update_swaps_direction(client: TestClient, create_account, balance_of) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    response = client.patch(
        f"/transfers/{transfer['id']}",
        json={"from_account_id": b["id"], "to_account_id": a["id"]},
    )
    assert response.status_code == 200
    assert balance_of(a["id"]) == 1200
    assert balance_of(b["id"]) == 300


def test_update_changes_destination(client: TestClient, create_account, balance_of) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    c = create_account("C", 0)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    client.patch(f"/transfers/{transfer['id']}", json={"to_account_id": c["id"]})
    assert balance_of(a["id"]) == 800
    assert balance_of(b["id"]) == 500
    assert balance_of(c["id"]) == 200


def test_update_rejects_matching_endpoints_without_side_effects(
    client: TestClient, create_account, balance_of
) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    response = client.patch(f"/transfers/{transfer['id']}", json={"to_account_id": a["id"]})
    assert response.status_code == 400
    assert balance_of(a["id"]) == 800
    assert balance_of(b["id"]) == 700


def test_update_and_delete_unknown_transfer(client: TestClient) -> None:
    missing = uuid.uuid4()
    assert client.patch(f"/transfers/{missing}", json={"amount": 5}).status_code == 404
    assert client.delete(f"/transfers/{missing}").status_code == 404


def test_delete_twice_only_reverses_once(client: TestClient, create_account, balance_of) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    assert client.delete(f"/transfers/{transfer['id']}").status_code == 204
    assert client.delete(f"/transfers/{transfer['id']}").status_code == 404
    assert balance_of(a["id"]) == 1000
    assert balance_of(b["id"]) == 500


def test_balance_is_conserved(client: TestClient, create_account, balance_of) -> None:
    accounts = [create_account(name, opening) for name, opening in (("A", 900), ("B", 400), ("C", 0))]
    ids = [a["id"] for a in accounts]
    total = sum(balance_of(i) for i in ids)

    first = _create_transfer(client, ids[0], ids[1], 300).json()
    second = _create_transfer(client, ids[1], ids[2], 250).json()
    _create_transfer(client, ids[2], ids[0], 5000)  # rejected
    client.patch(f"/transfers/{first['id']}", json={"amount": 450, "to_account_id": ids[2]})
    client.patch(f"/transfers/{second['id']}", json={"from_account_id": ids[2], "to_account_id": ids[1]})
    client.delete(f"/transfers/{first['id']}")

    assert sum(balance_of(i) for i in ids) == total


def test_transfer_idempotency(client: TestClient, create_account, balance_of) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    key = str(uuid.uuid4())
    payload = {
        "from_account_id": a["id"],
        "to_account_id": b["id"],
        "amount": 250,
        "date": "2024-01-01",
    }

    first = client.post("/transfers", json=payload, headers={"Idempotency-Key": key})
    second = client.post("/transfers", json=payload, headers={"Idempotency-Key": key})
    assert first.status_code == 201
    assert first.json() == second.json()
    assert balance_of(a["id"]) == 750
    assert balance_of(b["id"]) == 750
    assert len(client.get("/transfers").json()) == 1


def test_transfers_hidden_from_other_scopes(client: TestClient, create_account) -> None:
    a = create_account("A", 1000)
    b = create_account("B", 500)
    transfer = _create_transfer(client, a["id"], b["id"], 200).json()

    other = {"X-User-Id": "user-2"}
    assert client.get(f"/transfers/{transfer['id']}", headers=other).status_code == 404
    assert client.delete(f"/transfers/{transfer['id']}", headers=other).status_code == 404
    assert client.get("/transfers", headers=other).json() == []
