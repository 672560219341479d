import time

import pytest
from fastapi.testclient import TestClient

from app.core.errors import SignatureInvalid
from app.main import app
from app.models.analytics_event import AnalyticsEvent
from app.models.application import Application
from app.models.notification import Notification
from app.models.payment import Payment
from app.models.user import User
from app.services import notifications, payments

from conftest import (
    FakeAsyncSession,
    FakeGateway,
    FakeResult,
    RecordingSender,
    entity_handler,
    event_payload,
    make_application,
    make_payment,
    override_dependencies,
    sign_payload,
)


def _checkout_completed(application, payment, *, intent_id="pi_123", session_id="cs_test_123") -> bytes:
    return event_payload(
        "checkout.session.completed",
        {
            "id": session_id,
            "object": "checkout.session",
            "payment_intent": intent_id,
            "metadata": payments.correlation_metadata(application.id, application.user_id, payment.id),
        },
    )


def _intent_event(event_type, payment, *, intent_id="pi_123", **extra) -> bytes:
    return event_payload(
        event_type,
        {
            "id": intent_id,
            "object": "payment_intent",
            "metadata": payments.correlation_metadata(payment.application_id, payment.user_id, payment.id),
            **extra,
        },
    )


@pytest.fixture
def paid_setup(fake_db, test_user):
    application = make_application(user=test_user, status="payment_pending")
    payment = make_payment(application=application, stripe_session_id="cs_test_123")
    fake_db.on_get(Application, application.id, application)
    fake_db.on_get(Payment, payment.id, payment)
    fake_db.on_get(User, test_user.id, test_user)
    return application, payment


async def _deliver(db, payload: bytes, gateway=None):
    gateway = gateway or FakeGateway()
    return await payments.handle_webhook(db, payload, sign_payload(payload), gateway=gateway)


@pytest.mark.asyncio
async def test_missing_signature_fails_closed(fake_db, paid_setup):
    application, payment = paid_setup
    payload = _checkout_completed(application, payment)

    with pytest.raises(SignatureInvalid):
        await payments.handle_webhook(fake_db, payload, None, gateway=FakeGateway())
    assert payment.status == "pending"
    assert not fake_db.committed


@pytest.mark.asyncio
async def test_invalid_signature_fails_closed(fake_db, paid_setup):
    application, payment = paid_setup
    payload = _checkout_completed(application, payment)

    with pytest.raises(SignatureInvalid):
        await payments.handle_webhook(
            fake_db, payload, sign_payload(payload, secret="whsec_wrong"), gateway=FakeGateway()
        )
    assert payment.status == "pending"
    assert application.status == "payment_pending"


@pytest.mark.asyncio
async def test_stale_signature_is_rejected(fake_db, paid_setup):
    application, payment = paid_setup
    payload = _checkout_completed(application, payment)
    stale = sign_payload(payload, timestamp=int(time.time()) - 3600)

    with pytest.raises(SignatureInvalid):
        await payments.handle_webhook(fake_db, payload, stale, gateway=FakeGateway())


@pytest.mark.asyncio
async def test_missing_webhook_secret_fails_closed(fake_db, paid_setup):
    application, payment = paid_setup
    payload = _checkout_completed(application, payment)

    with pytest.raises(SignatureInvalid):
        await payments.handle_webhook(
            fake_db, payload, sign_payload(payload), gateway=FakeGateway(webhook_secret="")
        )


@pytest.mark.asyncio
async def test_test_events_are_acknowledged_without_processing(fake_db, paid_setup):
    application, payment = paid_setup
    payload = event_payload(
        "checkout.session.completed",
        {"metadata": payments.correlation_metadata(application.id, application.user_id, payment.id)},
        event_id="evt_test_webhook",
    )

    ack = await _deliver(fake_db, payload)

    assert ack == {"verified": True}
    assert payment.status == "pending"
    assert application.status == "payment_pending"


@pytest.mark.asyncio
async def test_checkout_completed_marks_payment_and_application(fake_db, paid_setup, sender):
    application, payment = paid_setup

    ack = await _deliver(fake_db, _checkout_completed(application, payment))

    assert ack == {"received": True}
    assert payment.status == "succeeded"
    assert payment.stripe_payment_intent_id == "pi_123"
    assert payment.completed_at is not None
    assert application.status == "ready_to_submit"
    notifications = fake_db.added_of(Notification)
    assert [n.type for n in notifications] == ["payment_received"]
    assert len(sender.sent) == 1
    assert "payment_completed" in [e.event_type for e in fake_db.added_of(AnalyticsEvent)]
    assert fake_db.committed


@pytest.mark.asyncio
async def test_duplicate_checkout_completed_is_a_no_op(fake_db, paid_setup, sender):
    application, payment = paid_setup
    payload = _checkout_completed(application, payment)

    await _deliver(fake_db, payload)
    completed_at = payment.completed_at
    await _deliver(fake_db, payload)

    assert payment.status == "succeeded"
    assert payment.completed_at == completed_at
    assert application.status == "ready_to_submit"
    assert len(fake_db.added_of(Notification)) == 1
    assert len(sender.sent) == 1


@pytest.mark.asyncio
async def test_intent_succeeded_before_checkout_completed(fake_db, paid_setup, sender):
    application, payment = paid_setup

    await _deliver(fake_db, _intent_event("payment_intent.succeeded", payment))
    assert payment.status == "succeeded"
    assert payment.stripe_payment_intent_id == "pi_123"
    assert application.status == "payment_pending"

    await _deliver(fake_db, _checkout_completed(application, payment))
    assert application.status == "ready_to_submit"
    assert len(fake_db.added_of(Notification)) == 1


@pytest.mark.asyncio
async def test_intent_succeeded_after_checkout_completed(test_user, sender):
    db = FakeAsyncSession()
    application = make_application(user=test_user, status="payment_pending")
    payment = make_payment(application=application)
    db.on_get(Application, application.id, application)
    db.on_get(Payment, payment.id, payment)
    db.on_get(User, test_user.id, test_user)
    db.on_execute(entity_handler(Payment, FakeResult(items=[payment])))

    await _deliver(db, _checkout_completed(application, payment))
    completed_at = payment.completed_at
    await _deliver(db, _intent_event("payment_intent.succeeded", payment))

    assert payment.status == "succeeded"
    assert payment.completed_at == completed_at
    assert application.status == "ready_to_submit"
    assert len(sender.sent) == 1


@pytest.mark.asyncio
async def test_checkout_completed_falls_back_to_latest_payment(test_user, sender):
    db = FakeAsyncSession()
    application = make_application(user=test_user, status="payment_pending")
    payment = make_payment(application=application)
    db.on_get(Application, application.id, application)
    db.on_get(User, test_user.id, test_user)
    db.on_execute(entity_handler(Payment, FakeResult(items=[payment])))
    payload = event_payload(
        "checkout.session.completed",
        {"id": "cs_test_9", "payment_intent": "pi_9", "metadata": {"application_id": str(application.id)}},
    )

    await _deliver(db, payload)

    assert payment.status == "succeeded"
    assert payment.stripe_payment_intent_id == "pi_9"
    assert application.status == "ready_to_submit"


@pytest.mark.asyncio
async def test_unresolvable_metadata_is_acknowledged(fake_db):
    payload = event_payload(
        "checkout.session.completed",
        {"id": "cs_test_x", "metadata": {"application_id": "not-a-uuid"}},
    )

    ack = await _deliver(fake_db, payload)

    assert ack == {"received": True}
    assert fake_db.added == []


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_webhook(fake_db, paid_setup):
    application, payment = paid_setup
    original = notifications.get_sender()
    notifications.set_sender(RecordingSender(fail=True))
    try:
        ack = await _deliver(fake_db, _checkout_completed(application, payment))
    finally:
        notifications.set_sender(original)

    assert ack == {"received": True}
    assert payment.status == "succeeded"
    assert application.status == "ready_to_submit"
    assert fake_db.added_of(Notification)[0].status == "failed"


@pytest.mark.asyncio
async def test_payment_failed_marks_failed_and_notifies_once(fake_db, paid_setup, sender):
    application, payment = paid_setup
    payload = _intent_event(
        "payment_intent.payment_failed",
        payment,
        intent_id="pi_fail",
        last_payment_error={"message": "Your card was declined."},
    )

    await _deliver(fake_db, payload)
    await _deliver(fake_db, payload)

    assert payment.status == "failed"
    assert payment.error_message == "Your card was declined."
    assert application.status == "payment_pending"
    assert [n.type for n in fake_db.added_of(Notification)] == ["payment_failed"]


@pytest.mark.asyncio
async def test_payment_failed_never_downgrades_success(fake_db, paid_setup, sender):
    application, payment = paid_setup
    payment.status = "succeeded"

    await _deliver(fake_db, _intent_event("payment_intent.payment_failed", payment))

    assert payment.status == "succeeded"
    assert fake_db.added_of(Notification) == []


@pytest.mark.asyncio
async def test_unknown_event_types_are_acknowledged(fake_db):
    ack = await _deliver(fake_db, event_payload("customer.created", {"id": "cus_1"}))
    assert ack == {"received": True}
    assert fake_db.added == []


@pytest.mark.asyncio
async def test_processing_errors_are_acknowledged(paid_setup):
    class ExplodingSession(FakeAsyncSession):
        async def get(self, model, pk):
            raise RuntimeError("database went away")

    db = ExplodingSession()
    application, payment = paid_setup

    ack = await _deliver(db, _checkout_completed(application, payment))

    assert ack == {"received": True}
    assert db.rolled_back


def test_webhook_route_returns_raw_ack(fake_db, paid_setup, test_user, sender):
    application, payment = paid_setup
    payload = _checkout_completed(application, payment)
    override_dependencies(fake_db, None, FakeGateway())
    try:
        resp = TestClient(app).post(
            "/api/v1/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"},
        )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    assert application.status == "ready_to_submit"


def test_webhook_route_rejects_bad_signature(fake_db, paid_setup):
    application, payment = paid_setup
    payload = _checkout_completed(application, payment)
    override_dependencies(fake_db, None, FakeGateway())
    try:
        resp = TestClient(app).post(
            "/api/v1/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": "t=1,v1=deadbeef", "Content-Type": "application/json"},
        )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 400
    assert resp.json()["code"] == "signature_invalid"
    assert payment.status == "pending"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        b'["not", "an", "object"]',
        b'"just a string"',
        b'{"id": "evt_1", "type": "checkout.session.completed", "data": "x"}',
        b'{"id": "evt_2", "type": "checkout.session.completed", "data": {"object": ["x"]}}',
        b'{"id": "evt_3", "type": "checkout.session.completed"}',
        b'{"id": "evt_4", "type": ["checkout.session.completed"], "data": {"object": {}}}',
    ],
)
async def test_malformed_verified_events_are_acknowledged(fake_db, body):
    ack = await _deliver(fake_db, body)

    assert ack == {"received": True}
    assert fake_db.added == []
    assert not fake_db.committed


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal_status", ["refunded", "cancelled"])
@pytest.mark.parametrize("event_type", ["payment_intent.succeeded", "checkout.session.completed"])
async def test_success_events_never_revive_terminal_payments(
    fake_db, paid_setup, sender, terminal_status, event_type
):
    application, payment = paid_setup
    payment.status = terminal_status
    if event_type == "checkout.session.completed":
        payload = _checkout_completed(application, payment, intent_id="pi_9")
    else:
        payload = _intent_event(event_type, payment, intent_id="pi_9")

    ack = await _deliver(fake_db, payload)

    assert ack == {"received": True}
    assert payment.status == terminal_status
    assert payment.completed_at is None
    assert payment.stripe_payment_intent_id == "pi_9"
    assert application.status == "payment_pending"
    assert fake_db.added_of(Notification) == []


@pytest.mark.asyncio
async def test_payment_confirmation_sent_when_application_already_ready(fake_db, paid_setup, sender):
    application, payment = paid_setup
    application.status = "ready_to_submit"

    await _deliver(fake_db, _checkout_completed(application, payment))
    await _deliver(fake_db, _checkout_completed(application, payment))

    assert payment.status == "succeeded"
    assert application.status == "ready_to_submit"
    assert [n.type for n in fake_db.added_of(Notification)] == ["payment_received"]
    assert len(sender.sent) == 1
