import pytest

from vidhanto.models import Appointment, BillingStatus, Document, DocumentType, Payment

from tests.helpers import auth_headers


@pytest.fixture
def appointment(user, lawyer, make_appointment):
    return make_appointment(user, lawyer)


def create_order(client, user, appointment, amount=None):
    response = client.post(
        "/api/payments/create-order",
        headers=auth_headers(user),
        json={"type": "appointment", "related_id": appointment.id, "amount": amount or appointment.total_fee},
    )
    return response


def verify(client, user, gateway, order_id, payment_id="pay_123", signature=None):
    return client.post(
        "/api/payments/verify",
        headers=auth_headers(user),
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature or gateway.sign(order_id, payment_id),
        },
    )


def paid_payment(client, user, gateway, appointment):
    order = create_order(client, user, appointment).json()
    return verify(client, user, gateway, order["order_id"]).json()


def test_create_order(client, user, appointment, gateway):
    response = create_order(client, user, appointment)
    assert response.status_code == 201
    body = response.json()
    assert body["amount"] == 165000
    assert body["currency"] == "INR"
    assert body["key_id"] == "rzp_test_key"
    payment = body["payment"]
    assert payment["status"] == "pending"
    assert payment["amount"] == 1650
    assert payment["consultation_fee"] == 1485
    assert payment["platform_fee"] == 165
    assert gateway.orders[0]["receipt"] == payment["id"]


def test_create_order_for_foreign_appointment(client, make_user, appointment):
    response = create_order(client, make_user(), appointment)
    assert response.status_code == 404
    assert response.json()["detail"] == "Appointment not found"


def test_create_order_validates_amount(client, user, appointment):
    response = client.post(
        "/api/payments/create-order",
        headers=auth_headers(user),
        json={"type": "appointment", "related_id": appointment.id, "amount": 0},
    )
    assert response.status_code == 400


def test_verify_captured_payment_marks_appointment_paid(client, db, user, appointment, gateway, mailer):
    order = create_order(client, user, appointment).json()
    response = verify(client, user, gateway, order["order_id"])
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["gateway_payment_id"] == "pay_123"
    assert body["processed_at"] is not None
    assert "Payment received" in mailer.subjects()

    db.expire_all()
    stored = db.get(Appointment, appointment.id)
    assert stored.payment_status == BillingStatus.PAID
    assert stored.payment_id == body["id"]

    # verifying again is idempotent
    again = verify(client, user, gateway, order["order_id"])
    assert again.status_code == 200
    assert again.json()["status"] == "completed"

    # and the appointment cannot be ordered twice
    duplicate = create_order(client, user, appointment)
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Appointment is already paid"


def test_verify_rejects_forged_signature(client, user, appointment, gateway):
    order = create_order(client, user, appointment).json()
    response = verify(client, user, gateway, order["order_id"], signature="forged")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid payment signature"


def test_verify_unknown_order(client, user, gateway):
    response = verify(client, user, gateway, "order_missing")
    assert response.status_code == 404


def test_verify_other_users_payment(client, make_user, user, appointment, gateway):
    order = create_order(client, user, appointment).json()
    response = verify(client, make_user(), gateway, order["order_id"])
    assert response.status_code == 403


def test_failed_payment_can_be_retried(client, user, appointment, gateway):
    gateway.payment_status = "failed"
    gateway.error_description = "Card declined"
    order = create_order(client, user, appointment).json()

    failed = verify(client, user, gateway, order["order_id"]).json()
    assert failed["status"] == "failed"
    assert failed["failure_reason"] == "Card declined"
    assert failed["retry_count"] == 1

    retry = client.post(f"/api/payments/{failed['id']}/retry", headers=auth_headers(user))
    assert retry.status_code == 200
    assert retry.json()["order_id"] != order["order_id"]
    assert retry.json()["payment"]["status"] == "pending"

    gateway.payment_status = "captured"
    completed = verify(client, user, gateway, retry.json()["order_id"]).json()
    assert completed["status"] == "completed"


def test_retry_limit(client, db, user, appointment, gateway):
    gateway.payment_status = "failed"
    order = create_order(client, user, appointment).json()
    failed = verify(client, user, gateway, order["order_id"]).json()
    assert failed["failure_reason"] == "Payment failed"

    payment = db.get(Payment, failed["id"])
    payment.retry_count = 3
    db.commit()

    response = client.post(f"/api/payments/{failed['id']}/retry", headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["detail"] == "Payment cannot be retried"


def test_pending_gateway_status_keeps_payment_pending(client, user, appointment, gateway):
    gateway.payment_status = "authorized"
    order = create_order(client, user, appointment).json()
    assert verify(client, user, gateway, order["order_id"]).json()["status"] == "pending"


def test_refund_keeps_processing_fee(client, db, user, appointment, gateway):
    payment = paid_payment(client, user, gateway, appointment)

    response = client.post(
        f"/api/payments/{payment['id']}/refund",
        headers=auth_headers(user),
        json={"reason": "Lawyer unavailable", "amount": 100000},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["max_refund_amount"] == 1617
    assert body["refund_amount"] == 1617
    assert body["processing_fee"] == 33
    assert body["payment"]["status"] == "refunded"
    assert body["payment"]["refund_status"] == "processed"
    assert gateway.refunds[0]["amount"] == 161700

    db.expire_all()
    assert db.get(Appointment, appointment.id).payment_status == BillingStatus.REFUNDED

    again = client.post(f"/api/payments/{payment['id']}/refund", headers=auth_headers(user), json={"reason": "again"})
    assert again.status_code == 400
    assert again.json()["detail"] == "Payment has already been refunded"


def test_verify_after_refund_leaves_payment_refunded(client, db, user, appointment, gateway):
    order = create_order(client, user, appointment).json()
    payment = verify(client, user, gateway, order["order_id"]).json()
    refund = client.post(
        f"/api/payments/{payment['id']}/refund",
        headers=auth_headers(user),
        json={"reason": "Lawyer unavailable"},
    )
    assert refund.json()["payment"]["status"] == "refunded"

    replay = verify(client, user, gateway, order["order_id"])
    assert replay.status_code == 200
    assert replay.json()["status"] == "refunded"

    db.expire_all()
    assert db.get(Appointment, appointment.id).payment_status == BillingStatus.REFUNDED


def test_verify_after_failure_does_not_use_up_retries(client, user, appointment, gateway):
    gateway.payment_status = "failed"
    order = create_order(client, user, appointment).json()
    assert verify(client, user, gateway, order["order_id"]).json()["retry_count"] == 1

    replay = verify(client, user, gateway, order["order_id"]).json()
    assert replay["status"] == "failed"
    assert replay["retry_count"] == 1


def test_partial_refund(client, user, appointment, gateway):
    payment = paid_payment(client, user, gateway, appointment)
    response = client.post(
        f"/api/payments/{payment['id']}/refund",
        headers=auth_headers(user),
        json={"reason": "Partial service", "amount": 500},
    )
    assert response.json()["refund_amount"] == 500


def test_refund_requires_completed_payment(client, user, appointment):
    order = create_order(client, user, appointment).json()
    response = client.post(
        f"/api/payments/{order['payment']['id']}/refund",
        headers=auth_headers(user),
        json={"reason": "Changed my mind"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Only completed payments can be refunded"


def test_admin_can_refund(client, user, admin, appointment, gateway):
    payment = paid_payment(client, user, gateway, appointment)
    response = client.post(
        f"/api/payments/{payment['id']}/refund",
        headers=auth_headers(admin),
        json={"reason": "Dispute resolved"},
    )
    assert response.status_code == 200


def test_document_payment_is_audited(client, db, user, gateway):
    document = Document(user_id=user.id, title="Will", type=DocumentType.WILL, base_price=1000)
    db.add(document)
    db.commit()

    order = client.post(
        "/api/payments/create-order",
        headers=auth_headers(user),
        json={"type": "document", "related_id": document.id, "amount": document.total_amount},
    ).json()
    assert order["payment"]["consultation_fee"] == 1180
    assert order["payment"]["platform_fee"] == 0
    verify(client, user, gateway, order["order_id"])

    db.expire_all()
    stored = db.get(Document, document.id)
    assert stored.payment_status == BillingStatus.PAID
    assert stored.audit_trail[-1]["action"] == "paid"


def test_history_and_access(client, user, make_user, admin, appointment, gateway):
    paid_payment(client, user, gateway, appointment)
    pending = create_order(client, user, appointment)
    assert pending.status_code == 400

    history = client.get("/api/payments/history", headers=auth_headers(user)).json()
    assert history["total"] == 1
    completed = client.get("/api/payments/history", headers=auth_headers(user), params={"status": "completed"}).json()
    assert completed["total"] == 1
    failed = client.get("/api/payments/history", headers=auth_headers(user), params={"status": "failed"}).json()
    assert failed["total"] == 0

    payment_id = history["payments"][0]["id"]
    assert client.get(f"/api/payments/{payment_id}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"/api/payments/{payment_id}", headers=auth_headers(make_user())).status_code == 403
    assert history["payments"][0]["status"] == "completed"
