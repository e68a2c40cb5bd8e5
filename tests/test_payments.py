import hashlib
import hmac
import json
from datetime import datetime, timedelta

import pytest
from razorpay.errors import SignatureVerificationError

from elevateu.orders import gateway

from conftest import make_published_course, run


class FakeOrders:
    def __init__(self):
        self.created = []

    def create(self, data):
        self.created.append(data)
        return {"id": f"order_{len(self.created)}", "amount": data["amount"], "currency": data["currency"]}


class FakeUtility:
    def verify_webhook_signature(self, body, signature, secret):
        if signature != "signed":
            raise SignatureVerificationError("Razorpay Signature Verification Failed")
        return True


class FakeRazorpay:
    def __init__(self):
        self.order = FakeOrders()
        self.utility = FakeUtility()


@pytest.fixture
def razorpay(monkeypatch):
    fake = FakeRazorpay()
    monkeypatch.setattr(gateway, "razorpay_client", fake)
    return fake


@pytest.fixture
def trusted_webhooks(monkeypatch):
    monkeypatch.setattr(gateway, "verify_webhook_signature", lambda body, signature: True)


def _sign(order_id, payment_id):
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(gateway.RAZORPAY_SECRET_KEY.encode(), message, hashlib.sha256).hexdigest()


def _verify(client, razorpay_order_id, payment_id="pay_1"):
    return client.post("/api/user/verify-payment", json={
        "razorpay_order_id": razorpay_order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": _sign(razorpay_order_id, payment_id),
    })


def _balance(db, owner_id):
    wallet = run(db.wallets.find_one({"owner_id": owner_id}))
    return wallet["balance"] if wallet else 0


def _webhook(client, event, order_id, amount, payment_id="pay_hook"):
    body = {
        "event": event,
        "payload": {"payment": {"entity": {
            "id": payment_id, "order_id": order_id, "amount": amount, "currency": "INR",
            "error_description": "Card declined",
        }}},
    }
    return client.post(
        "/api/payments/webhook",
        content=json.dumps(body),
        headers={"X-Razorpay-Signature": "signed", "Content-Type": "application/json"},
    )


def test_create_order(client, user, published_course, razorpay):
    response = client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["razorpay_order_id"] == "order_1"
    assert data["amount"] == 50000
    assert data["currency"] == "INR"
    assert data["order"]["payment_status"] == "pending"
    assert razorpay.order.created[0]["amount"] == 50000


def test_free_course_cannot_be_ordered(client, db, user, tutor, category, razorpay):
    free = make_published_course(db, tutor["tutor_id"], category["category_id"], title="Free Taster", price=0)

    response = client.post("/api/user/create-order", json={"course_id": free["course_id"]})

    assert response.status_code == 400
    assert razorpay.order.created == []


def test_verify_rejects_bad_signature(client, user, published_course, razorpay):
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    response = client.post("/api/user/verify-payment", json={
        "razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": "forged",
    })

    assert response.status_code == 400


def test_verified_payment_settles_exactly_once(client, db, user, tutor, published_course, razorpay, trusted_webhooks):
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    first = _verify(client, "order_1")
    assert first.status_code == 200
    assert first.json()["message"] == "Payment verified successfully"
    assert first.json()["data"]["payment_status"] == "success"

    assert _balance(db, tutor["tutor_id"]) == 450
    assert _balance(db, "platform") == 50

    # replayed verify and a late webhook change nothing
    second = _verify(client, "order_1")
    assert second.status_code == 200
    assert second.json()["message"] == "Payment already verified"
    assert _webhook(client, "payment.captured", "order_1", 50000).json() == {"status": "ok"}

    assert _balance(db, tutor["tutor_id"]) == 450
    assert _balance(db, "platform") == 50
    assert run(db.enrolled_courses.count_documents({"user_id": user["user_id"]})) == 1

    stored_course = run(db.courses.find_one({"course_id": published_course["course_id"]}))
    assert stored_course["enroll_count"] == 1

    tutor_notes = run(db.notifications.find({"recipient_id": tutor["tutor_id"]}).to_list(length=None))
    assert [note["type"] for note in tutor_notes] == ["new_enrollment"]

    # enrolled users cannot order again
    again = client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})
    assert again.status_code == 409


def test_webhook_settles_when_frontend_never_verifies(client, db, user, tutor, published_course, razorpay, trusted_webhooks):
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    mismatch = _webhook(client, "payment.captured", "order_1", 100)
    assert mismatch.json()["status"] == "error"
    assert _balance(db, tutor["tutor_id"]) == 0

    response = _webhook(client, "payment.captured", "order_1", 50000)
    assert response.json() == {"status": "ok"}

    order = run(db.orders.find_one({"razorpay_order_id": "order_1"}))
    assert order["payment_status"] == "success"
    assert order["verified_via"] == "webhook"
    assert _balance(db, tutor["tutor_id"]) == 450


def test_webhook_with_bad_signature_is_rejected(client, user, published_course, razorpay):
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    response = client.post("/api/payments/webhook", content=b"{}", headers={"X-Razorpay-Signature": "nope"})

    assert response.status_code == 400


def test_failed_payment_can_still_be_settled(client, db, user, published_course, razorpay):
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    failed = client.patch("/api/user/failed-payment/order_1", json={"reason": "User closed checkout"})
    assert failed.status_code == 200
    assert failed.json()["data"]["payment_status"] == "failed"

    assert client.patch("/api/user/failed-payment/order_1").status_code == 400

    retried = _verify(client, "order_1", "pay_retry")
    assert retried.status_code == 200
    assert retried.json()["data"]["payment_status"] == "success"


def test_coupon_is_claimed_on_settlement(client, db, user, tutor, published_course, razorpay):
    run(db.coupons.insert_one({
        "coupon_id": "CPN_HALF", "code": "HALF", "discount_type": "percent", "discount": 50,
        "min_amount": 0, "max_discount": None, "usage_limit": 10, "usage_count": 0, "used_by": [],
        "is_active": True, "expires_at": datetime.utcnow() + timedelta(days=1),
    }))
    client.post("/api/user/apply-coupon", json={"course_id": published_course["course_id"], "code": "HALF"})

    order = client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})
    assert order.json()["data"]["amount"] == 25000

    assert _verify(client, "order_1").status_code == 200

    coupon = run(db.coupons.find_one({"coupon_id": "CPN_HALF"}))
    assert coupon["usage_count"] == 1
    assert coupon["used_by"] == [user["user_id"]]
    assert run(db.applied_coupons.count_documents({"user_id": user["user_id"]})) == 0
    assert _balance(db, tutor["tutor_id"]) == 225


def test_admin_lists_orders(client, db, admin, user, published_course, razorpay):
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    response = client.get("/api/admin/orders", params={"status": "pending"})

    assert response.status_code == 200
    assert [o["razorpay_order_id"] for o in response.json()["data"]] == ["order_1"]
    assert response.json()["pagination"]["total"] == 1


def _half_price_coupon(db):
    run(db.coupons.insert_one({
        "coupon_id": "CPN_HALF", "code": "HALF", "discount_type": "percent", "discount": 50,
        "min_amount": 0, "max_discount": None, "usage_limit": 10, "usage_count": 0, "used_by": [],
        "is_active": True, "expires_at": datetime.utcnow() + timedelta(days=1),
    }))


def test_repeated_checkout_reuses_pending_order(client, db, user, published_course, razorpay):
    first = client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})
    second = client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    assert second.status_code == 201
    assert second.json()["data"]["razorpay_order_id"] == first.json()["data"]["razorpay_order_id"]
    assert len(razorpay.order.created) == 1
    assert run(db.orders.count_documents({"user_id": user["user_id"]})) == 1


def test_price_change_supersedes_pending_order(client, db, user, published_course, razorpay):
    _half_price_coupon(db)
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})
    client.post("/api/user/apply-coupon", json={"course_id": published_course["course_id"], "code": "HALF"})

    response = client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    assert response.json()["data"]["razorpay_order_id"] == "order_2"
    assert response.json()["data"]["amount"] == 25000
    superseded = run(db.orders.find_one({"razorpay_order_id": "order_1"}))
    assert superseded["payment_status"] == "failed"


def test_paying_an_owned_course_again_moves_no_money(client, db, user, tutor, published_course, razorpay):
    _half_price_coupon(db)
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})
    client.post("/api/user/apply-coupon", json={"course_id": published_course["course_id"], "code": "HALF"})
    client.post("/api/user/create-order", json={"course_id": published_course["course_id"]})

    assert _verify(client, "order_2").status_code == 200
    assert _balance(db, tutor["tutor_id"]) == 225
    assert _balance(db, "platform") == 25

    # the superseded checkout was still completed on the gateway
    late = _verify(client, "order_1", "pay_late")
    assert late.status_code == 200
    assert late.json()["data"]["refund_required"] is True

    assert _balance(db, tutor["tutor_id"]) == 225
    assert _balance(db, "platform") == 25
    assert run(db.enrolled_courses.count_documents({"user_id": user["user_id"]})) == 1
    assert run(db.transactions.count_documents({"owner_id": user["user_id"]})) == 1

    stored = run(db.orders.find_one({"razorpay_order_id": "order_1"}))
    assert stored["payment_status"] == "success"
    assert stored["refund_required"] is True
