import pytest

from elevateu.wallet import service
from elevateu.wallet.models import TransactionPurpose

from conftest import run

BANK = {
    "type": "bank",
    "account_number": "123456789012",
    "ifsc": "hdfc0001234",
    "bank_name": "HDFC Bank",
    "holder_name": "Tara Example",
}


@pytest.fixture
def funded_tutor(client, db, tutor):
    run(service.credit(db, tutor["tutor_id"], "tutor", 1000, TransactionPurpose.COURSE_PURCHASE, "Seed earnings"))
    assert client.post("/api/tutor/bank-details", json=BANK).status_code == 201
    return tutor


def _withdraw(client, amount):
    return client.post("/api/tutor/withdrawal-request", json={"amount": amount})


def _wallet(client, role="tutor"):
    return client.get(f"/api/{role}/wallet").json()["data"]["wallet"]


def test_bank_details_are_validated(client, tutor):
    bad_ifsc = client.post("/api/tutor/bank-details", json=dict(BANK, ifsc="HDFC1234"))
    assert bad_ifsc.status_code == 400

    incomplete = client.post("/api/tutor/bank-details", json={"type": "bank", "ifsc": "HDFC0001234"})
    assert incomplete.status_code == 400

    response = client.post("/api/tutor/bank-details", json=BANK)
    assert response.status_code == 201
    method = response.json()["data"]
    assert method["ifsc"] == "HDFC0001234"
    assert method["is_default"] is True

    gpay = client.post("/api/tutor/bank-details", json={"type": "gpay", "email": "tara@example.net", "is_default": True})
    assert gpay.status_code == 201

    methods = client.get("/api/tutor/bank-details").json()["data"]
    assert [m["is_default"] for m in methods] == [False, True]


def test_withdrawal_needs_a_payment_method(client, db, tutor):
    run(service.credit(db, tutor["tutor_id"], "tutor", 500, TransactionPurpose.COURSE_PURCHASE, "Seed earnings"))

    response = _withdraw(client, 200)

    assert response.status_code == 400
    assert _wallet(client)["balance"] == 500


def test_withdrawal_limits(client, funded_tutor):
    below_minimum = _withdraw(client, 50)
    assert below_minimum.status_code == 400
    assert below_minimum.json()["message"] == "Minimum withdrawal amount is 100"

    too_much = _withdraw(client, 5000)
    assert too_much.status_code == 400
    assert too_much.json()["message"] == "Insufficient wallet balance"

    assert _wallet(client)["balance"] == 1000


def test_rejected_withdrawal_is_refunded(client, db, admin, funded_tutor):
    response = _withdraw(client, 400)
    assert response.status_code == 201
    request_id = response.json()["data"]["request_id"]
    assert response.json()["data"]["payment_method"]["bank_name"] == "HDFC Bank"

    # reserved as soon as it is requested
    assert _wallet(client)["balance"] == 600

    admin_notes = run(db.notifications.find({"recipient_id": admin["admin_id"]}).to_list(length=None))
    assert [note["type"] for note in admin_notes] == ["withdraw_request"]

    no_note = client.patch("/api/admin/withdraw-request/approve-or-reject", json={
        "request_id": request_id, "action": "reject",
    })
    assert no_note.status_code == 400

    rejected = client.patch("/api/admin/withdraw-request/approve-or-reject", json={
        "request_id": request_id, "action": "reject", "note": "Account name does not match",
    })
    assert rejected.status_code == 200
    assert rejected.json()["data"]["status"] == "rejected"

    wallet = _wallet(client)
    assert wallet["balance"] == 1000
    assert wallet["total_withdrawals"] == 0

    tutor_notes = run(db.notifications.find({"recipient_id": funded_tutor["tutor_id"]}).to_list(length=None))
    assert [note["type"] for note in tutor_notes] == ["withdraw_rejected"]

    refunds = client.get("/api/admin/transactions", params={"purpose": "refund"}).json()
    assert refunds["pagination"]["total"] == 1
    assert refunds["data"][0]["amount"] == 400


def test_withdrawal_moves_through_processing_to_completed(client, db, admin, funded_tutor):
    request_id = _withdraw(client, 300).json()["data"]["request_id"]

    processing = client.patch("/api/admin/withdraw-request/approve-or-reject", json={
        "request_id": request_id, "action": "processing",
    })
    assert processing.json()["data"]["status"] == "processing"

    approved = client.patch("/api/admin/withdraw-request/approve-or-reject", json={
        "request_id": request_id, "action": "approve",
    })
    assert approved.json()["data"]["status"] == "completed"

    closed = client.patch("/api/admin/withdraw-request/approve-or-reject", json={
        "request_id": request_id, "action": "reject", "note": "Too late",
    })
    assert closed.status_code == 400

    wallet = _wallet(client)
    assert wallet["balance"] == 700
    assert wallet["total_withdrawals"] == 300

    transaction = run(db.transactions.find_one({"reference": request_id, "purpose": "withdrawal"}))
    assert transaction["status"] == "completed"

    listed = client.get("/api/admin/withdraw-request", params={"status": "completed", "search": "tara"}).json()
    assert [r["request_id"] for r in listed["data"]] == [request_id]

    own = client.get("/api/tutor/withdrawal-request").json()
    assert own["pagination"]["total"] == 1


def test_unknown_withdrawal_request(client, admin):
    response = client.patch("/api/admin/withdraw-request/approve-or-reject", json={
        "request_id": "WDR_MISSING", "action": "approve",
    })

    assert response.status_code == 404


def test_admin_withdraws_from_platform_wallet(client, db, admin):
    run(service.credit(db, "platform", "admin", 80, TransactionPurpose.COMMISSION, "Platform fee"))

    assert client.post("/api/admin/wallet/withdraw", json={"amount": 100}).status_code == 400

    response = client.post("/api/admin/wallet/withdraw", json={"amount": 30, "note": "Server costs"})
    assert response.status_code == 200
    assert response.json()["data"]["description"] == "Server costs"
    assert "_id" not in response.json()["data"]

    assert _wallet(client, "admin")["balance"] == 50
