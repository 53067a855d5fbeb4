"""
API tests for the checkout and delivery endpoints.
"""

import pytest

from flower_checkout.checkout.models import MemberProfile, SavedAddress
from flower_checkout.exceptions import AuthenticationError, OrderCreationError

CART = {"items": [
    {"product_id": "p-1", "name": "Red Roses Bouquet", "unit_price": 899.90, "quantity": 1},
]}

RECIPIENT = {
    "name": "Ayşe Yılmaz",
    "phone": "0555 123 45 67",
    "region": "avrupa",
    "district": "Beşiktaş",
    "neighborhood": "Levent",
    "street": "Nispetiye Caddesi",
    "building_number": "12",
    "delivery_date": "2026-10-20",
    "delivery_time_slot": "11:00 – 17:00",
}


def start(client, **body):
    body.setdefault("cart", CART)
    resp = client.post("/checkout/sessions", json=body)
    assert resp.status_code == 201
    return resp.json()


def to_payment(client, session_id):
    base = f"/checkout/sessions/{session_id}"
    assert client.post(f"{base}/advance").json()["ok"]
    assert client.put(f"{base}/recipient", json=RECIPIENT).status_code == 200
    assert client.post(f"{base}/advance").json()["step"] == "message"
    assert client.put(f"{base}/message", json={"content": "Happy birthday!", "sender_name": "Can"}).status_code == 200
    assert client.post(f"{base}/advance").json()["step"] == "payment"
    resp = client.put(f"{base}/identity", json={
        "kind": "guest", "email": "ayse@cicekci.com.tr", "phone": "0532 999 88 77",
    })
    assert resp.json()["gate"]["open"]
    return base


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_request_id_header(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"


class TestCheckoutSessions:
    def test_start_checkout(self, client):
        data = start(client, client_id="browser-1")
        session = data["session"]
        assert session["step"] == "cart"
        assert session["client_id"] == "browser-1"
        assert session["total"] == 899.9
        assert session["is_intercepting"] is False
        assert session["identity_gate"]["field"] == "identity"
        assert data["restored_from"] is None

    def test_versioned_prefix(self, client):
        resp = client.post("/api/v1/checkout/sessions", json={"cart": CART})
        assert resp.status_code == 201

    def test_get_unknown_session(self, client):
        assert client.get("/checkout/sessions/nope").status_code == 404

    def test_get_session(self, client):
        session_id = start(client)["session"]["session_id"]
        resp = client.get(f"/checkout/sessions/{session_id}")
        assert resp.status_code == 200
        assert resp.json()["session_id"] == session_id

    def test_signed_in_customer_skips_identity_choice(self, client, customer_client):
        customer_client.get_profile.return_value = MemberProfile(
            customer_id="42",
            addresses=[SavedAddress(
                id="addr-1", recipient_name="Mehmet Demir", recipient_phone="5321112233",
                province="İstanbul", district="Şişli", neighborhood="Bomonti",
                street="Silahşör Caddesi", building_number="5", is_default=True,
            )],
        )

        data = start(client, customer_id="42")

        assert data["session"]["identity"]["kind"] == "member"
        assert data["session"]["identity_gate"]["open"]
        assert data["restored_from"] == "saved_address"
        assert data["session"]["recipient"]["name"] == "Mehmet Demir"

    def test_unknown_profile_still_signs_in(self, client, customer_client):
        customer_client.get_profile.side_effect = AuthenticationError("down")
        data = start(client, customer_id="42")
        assert data["session"]["identity"]["customer_id"] == "42"

    def test_draft_restored_for_same_client(self, client):
        first = start(client, client_id="browser-7")["session"]["session_id"]
        client.put(f"/checkout/sessions/{first}/recipient", json=RECIPIENT)

        data = start(client, client_id="browser-7")

        assert data["restored_from"] == "draft"
        assert data["session"]["recipient"]["name"] == RECIPIENT["name"]

    def test_empty_cart_does_not_restore_draft(self, client):
        first = start(client, client_id="browser-8")["session"]["session_id"]
        client.put(f"/checkout/sessions/{first}/recipient", json=RECIPIENT)

        data = start(client, client_id="browser-8", cart={"items": []})

        assert data["restored_from"] is None
        assert data["session"]["recipient"]["name"] == ""
        assert start(client, client_id="browser-8")["restored_from"] is None


class TestSteps:
    def test_invalid_recipient_errors_in_order(self, client):
        session_id = start(client)["session"]["session_id"]
        base = f"/checkout/sessions/{session_id}"
        client.post(f"{base}/advance")
        client.put(f"{base}/recipient", json={**RECIPIENT, "name": "", "delivery_date": "2026-10-25"})

        data = client.post(f"{base}/advance").json()

        assert data["ok"] is False
        assert data["step"] == "recipient"
        assert data["first_error_field"] == "name"
        assert [e["field"] for e in data["errors"]] == ["name", "delivery_date"]

    def test_forward_jump_refused(self, client):
        session_id = start(client)["session"]["session_id"]
        assert client.post(f"/checkout/sessions/{session_id}/steps/payment").status_code == 409

    def test_back_gesture(self, client):
        session_id = start(client)["session"]["session_id"]
        base = f"/checkout/sessions/{session_id}"
        client.post(f"{base}/advance")

        first = client.post(f"{base}/navigate", json={"intent": "back"}).json()
        second = client.post(f"{base}/navigate", json={"intent": "back"}).json()

        assert first == {"outcome": "intercepted", "step": "cart", "is_intercepting": False}
        assert second["outcome"] == "native"

    def test_emptying_cart_returns_to_cart(self, client):
        session_id = start(client)["session"]["session_id"]
        base = f"/checkout/sessions/{session_id}"
        client.post(f"{base}/advance")
        data = client.put(f"{base}/cart", json={"items": []}).json()
        assert data["step"] == "cart"

    def test_saved_address_not_found(self, client):
        session_id = start(client)["session"]["session_id"]
        resp = client.post(f"/checkout/sessions/{session_id}/saved-address", json={"address_id": "x"})
        assert resp.status_code == 404

    def test_login_flow(self, client, auth_client):
        auth_client.verify_login.return_value = MemberProfile(customer_id="42")
        session_id = start(client)["session"]["session_id"]
        base = f"/checkout/sessions/{session_id}"
        client.put(f"{base}/identity", json={"kind": "member"})

        assert client.post(f"{base}/login/start", json={"identifier": "5321112233"}).json()["ok"]
        data = client.post(f"{base}/login/verify", json={"identifier": "5321112233", "code": "123456"}).json()

        assert data["ok"]
        assert data["session"]["identity_gate"]["open"]


class TestPayment:
    def test_card_payment_redirect_and_return(self, client):
        session_id = start(client, client_id="browser-9")["session"]["session_id"]
        base = to_payment(client, session_id)

        data = client.post(f"{base}/payment", json={"method": "credit_card", "accept_terms": True}).json()
        assert data["status"] == "redirect"
        assert data["redirect_content"] == "<form id='3ds'>...</form>"
        assert data["step"] == "payment"

        data = client.post(f"{base}/payment/return", json={"succeeded": True, "payment_id": "pay-1"}).json()
        assert data["status"] == "paid"
        assert data["step"] == "success"

    def test_payment_return_with_foreign_payment_id(self, client):
        session_id = start(client)["session"]["session_id"]
        base = to_payment(client, session_id)
        client.post(f"{base}/payment", json={"method": "credit_card", "accept_terms": True})

        resp = client.post(f"{base}/payment/return", json={"succeeded": True, "payment_id": "pay-other"})

        assert resp.status_code == 409
        assert client.get(base).json()["step"] == "payment"

    def test_abandoned_payment_offered_on_next_visit(self, client, order_service):
        session_id = start(client, client_id="browser-10")["session"]["session_id"]
        base = to_payment(client, session_id)
        client.post(f"{base}/payment", json={"method": "credit_card", "accept_terms": True})

        data = start(client, client_id="browser-10")
        offer = data["session"]["resume_offer"]
        assert offer["order_id"] == "ord-1"
        order_service.report_reminder_action.assert_called_once_with("ord-1", "shown")

        new_base = f"/checkout/sessions/{data['session']['session_id']}"
        resumed = client.post(f"{new_base}/resume").json()
        assert resumed["step"] == "payment"
        assert resumed["session"]["resume_offer"] is None

    def test_dismiss_resume_offer(self, client):
        session_id = start(client, client_id="browser-11")["session"]["session_id"]
        base = to_payment(client, session_id)
        client.post(f"{base}/payment", json={"method": "credit_card", "accept_terms": True})

        data = client.post(f"{base}/dismiss").json()
        assert data["resume_offer"] is None
        assert data["cart"]["items"]

    def test_bank_transfer(self, client):
        session_id = start(client)["session"]["session_id"]
        base = to_payment(client, session_id)

        data = client.post(f"{base}/payment", json={"method": "bank_transfer", "accept_terms": True}).json()
        assert data["status"] == "awaiting_bank_transfer"
        assert data["summary"]["order_number"] == "FL-1001"

        session = client.get(base).json()
        assert session["step"] == "success"
        assert session["bank_transfer_summary"]["order_id"] == "ord-1"
        assert session["cart"]["items"]

    def test_terms_not_accepted(self, client):
        session_id = start(client)["session"]["session_id"]
        base = to_payment(client, session_id)
        data = client.post(f"{base}/payment", json={"method": "credit_card"}).json()
        assert data["status"] == "validation_failed"
        assert data["first_error_field"] == "accept_terms"

    def test_order_failure_keeps_payment_step(self, client, order_service):
        order_service.create_order.side_effect = OrderCreationError("Out of stock")
        session_id = start(client)["session"]["session_id"]
        base = to_payment(client, session_id)

        data = client.post(f"{base}/payment", json={"method": "credit_card", "accept_terms": True}).json()

        assert data["status"] == "order_failed"
        assert data["step"] == "payment"
        assert client.get(base).json()["payment"]["is_processing"] is False

    def test_payment_from_cart_conflicts(self, client):
        session_id = start(client)["session"]["session_id"]
        resp = client.post(f"/checkout/sessions/{session_id}/payment", json={"accept_terms": True})
        assert resp.status_code == 409


class TestDeliveryEndpoints:
    def test_window(self, client):
        data = client.get("/delivery/window").json()
        assert data["start"] == "2026-10-20"
        assert data["end"] == "2026-10-26"
        assert {"date": "2026-10-25", "reason": "sunday"} in data["blocked_dates"]
        assert data["next_available"] == "2026-10-20"
        assert data["time_slots"] == ["11:00-17:00", "17:00-22:00"]

    @pytest.mark.parametrize("raw,expected_date,status", [
        ("2026-10-25", "2026-10-26", "advanced"),
        ("2026-10-01", "2026-10-20", "clamped"),
        ("2026-10-21", "2026-10-21", "accepted"),
    ])
    def test_date_selection(self, client, raw, expected_date, status):
        data = client.post("/delivery/date-selection", json={"date": raw}).json()
        assert data["date"] == expected_date
        assert data["status"] == status
        assert data["requires_reprompt"] is False

    def test_districts(self, client):
        regions = {r["region"]: r for r in client.get("/delivery/districts").json()}
        assert regions["anadolu"]["is_closed"] is True
        assert regions["anadolu"]["districts"] == []
        assert "Çatalca" in regions["avrupa"]["unavailable_districts"]
        assert "Beşiktaş" in regions["avrupa"]["districts"]
