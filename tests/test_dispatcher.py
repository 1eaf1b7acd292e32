from types import SimpleNamespace

import pytest
from firebase_admin import exceptions, messaging

from petcare.reminders.config import ReminderSettings
from petcare.reminders.dispatcher import (
    INVALID_REGISTRATION_TOKEN,
    MAX_MULTICAST_TOKENS,
    MISMATCHED_CREDENTIAL,
    TOKEN_NOT_REGISTERED,
    DeliveryOutcome,
    FcmPushGateway,
    PushMessage,
    SEND_FAILED,
    PushUnavailableError,
    build_multicast_message,
    classify_send_error,
)


@pytest.mark.parametrize(
    "exc, kind",
    [
        (messaging.UnregisteredError("token gone"), TOKEN_NOT_REGISTERED),
        (messaging.SenderIdMismatchError("other project"), MISMATCHED_CREDENTIAL),
        (exceptions.InvalidArgumentError("bad token"), INVALID_REGISTRATION_TOKEN),
        (messaging.QuotaExceededError("slow down"), "quota-exceeded"),
        (messaging.ThirdPartyAuthError("apns cert"), "third-party-auth-error"),
        (exceptions.UnavailableError("try later"), "server-unavailable"),
        (exceptions.DeadlineExceededError("timeout"), "deadline-exceeded"),
        (RuntimeError("boom"), "unknown-error"),
        (None, "unknown-error"),
    ],
)
def test_classify_send_error(exc, kind):
    assert classify_send_error(exc) == kind


def test_multicast_message_carries_platform_hints():
    message = PushMessage(
        title="Vaccine",
        body="Rabies booster",
        tokens=["A", "B"],
        data={"pet_id": "7", "reminder_type": "vaccine", "instructions": ""},
    )

    multicast = build_multicast_message(message, message.tokens)

    assert multicast.tokens == ["A", "B"]
    assert multicast.notification.title == "Vaccine"
    assert multicast.notification.body == "Rabies booster"
    assert multicast.data == {"pet_id": "7", "reminder_type": "vaccine", "instructions": ""}
    assert multicast.android.priority == "high"
    assert multicast.apns.headers == {"apns-priority": "10", "apns-push-type": "alert"}
    assert multicast.apns.payload.aps.sound == "default"


def _batch(responses):
    return SimpleNamespace(
        responses=responses,
        success_count=sum(1 for r in responses if r.success),
        failure_count=sum(1 for r in responses if not r.success),
    )


@pytest.fixture
def gateway():
    gw = FcmPushGateway(ReminderSettings(METRICS_ENABLED=False))
    gw._app = SimpleNamespace(name="test")
    return gw


def test_send_multicast_maps_each_response(gateway, monkeypatch):
    calls = []

    def fake_send(multicast, app=None):
        calls.append(multicast)
        return _batch([
            SimpleNamespace(success=True, message_id="m-1", exception=None),
            SimpleNamespace(success=False, message_id=None, exception=messaging.UnregisteredError("gone")),
        ])

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_send)

    outcomes = gateway.send_multicast(PushMessage(title="t", body="b", tokens=["A", "B"]))

    assert outcomes == [DeliveryOutcome.ok("m-1"), DeliveryOutcome.failed(TOKEN_NOT_REGISTERED)]
    assert len(calls) == 1


def test_send_multicast_splits_large_token_lists(gateway, monkeypatch):
    sizes = []

    def fake_send(multicast, app=None):
        sizes.append(len(multicast.tokens))
        return _batch([
            SimpleNamespace(success=True, message_id=f"m-{t}", exception=None) for t in multicast.tokens
        ])

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_send)
    tokens = [f"t{i}" for i in range(MAX_MULTICAST_TOKENS + 3)]

    outcomes = gateway.send_multicast(PushMessage(title="t", body="b", tokens=tokens))

    assert sizes == [MAX_MULTICAST_TOKENS, 3]
    assert len(outcomes) == len(tokens)
    assert all(o.success for o in outcomes)


def test_transport_failure_raises_push_unavailable(gateway, monkeypatch):
    def fake_send(multicast, app=None):
        raise exceptions.UnavailableError("fcm down")

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_send)

    with pytest.raises(PushUnavailableError):
        gateway.send_multicast(PushMessage(title="t", body="b", tokens=["A"]))


def test_failed_chunk_keeps_outcomes_of_delivered_chunks(gateway, monkeypatch):
    def fake_send(multicast, app=None):
        if len(multicast.tokens) < MAX_MULTICAST_TOKENS:
            raise exceptions.UnavailableError("fcm down")
        return _batch(
            [SimpleNamespace(success=False, message_id=None, exception=messaging.UnregisteredError("gone"))]
            + [SimpleNamespace(success=True, message_id=f"m-{t}", exception=None) for t in multicast.tokens[1:]]
        )

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_send)
    tokens = [f"t{i}" for i in range(MAX_MULTICAST_TOKENS + 3)]

    outcomes = gateway.send_multicast(PushMessage(title="t", body="b", tokens=tokens))

    assert len(outcomes) == len(tokens)
    assert outcomes[0] == DeliveryOutcome.failed(TOKEN_NOT_REGISTERED)
    assert outcomes[1].success
    assert outcomes[-3:] == [DeliveryOutcome.failed(SEND_FAILED)] * 3
