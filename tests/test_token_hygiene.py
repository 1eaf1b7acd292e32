from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from petcare.reminders import token_hygiene
from petcare.reminders.dispatcher import (
    INVALID_REGISTRATION_TOKEN,
    MISMATCHED_CREDENTIAL,
    TOKEN_NOT_REGISTERED,
    DeliveryOutcome,
)
from petcare.reminders.models import DeviceToken
from petcare.reminders.token_hygiene import find_invalid_tokens, remove_invalid_tokens


def _tokens(db, user_id="user-1"):
    return sorted(db.execute(select(DeviceToken.fcm_token).where(DeviceToken.user_id == user_id)).scalars())


def test_only_permanent_failures_are_invalid():
    outcomes = [
        DeliveryOutcome.ok("m-1"),
        DeliveryOutcome.failed(TOKEN_NOT_REGISTERED),
        DeliveryOutcome.failed("quota-exceeded"),
    ]

    assert find_invalid_tokens(outcomes, ["A", "B", "C"]) == ["B"]


def test_all_permanent_error_kinds_are_recognised():
    outcomes = [
        DeliveryOutcome.failed(INVALID_REGISTRATION_TOKEN),
        DeliveryOutcome.failed(TOKEN_NOT_REGISTERED),
        DeliveryOutcome.failed(MISMATCHED_CREDENTIAL),
        DeliveryOutcome.failed("server-unavailable"),
        DeliveryOutcome.failed("internal-error"),
    ]

    assert find_invalid_tokens(outcomes, ["A", "B", "C", "D", "E"]) == ["A", "B", "C"]


def test_length_mismatch_only_checks_the_overlap():
    outcomes = [DeliveryOutcome.failed(TOKEN_NOT_REGISTERED)]

    assert find_invalid_tokens(outcomes, ["A", "B"]) == ["A"]


def test_remove_invalid_tokens_deletes_only_the_unregistered_one(db, add_token):
    for token in ("A", "B", "C"):
        add_token(token)
    add_token("B", user_id="user-2")
    outcomes = [
        DeliveryOutcome.ok("m-1"),
        DeliveryOutcome.failed(TOKEN_NOT_REGISTERED),
        DeliveryOutcome.failed("quota-exceeded"),
    ]

    removed = remove_invalid_tokens(db, "user-1", outcomes, ["A", "B", "C"])

    assert removed == ["B"]
    assert _tokens(db) == ["A", "C"]
    assert _tokens(db, "user-2") == ["B"]


def test_token_already_gone_is_not_an_error(db, add_token):
    add_token("A")

    removed = remove_invalid_tokens(db, "user-1", [DeliveryOutcome.failed(TOKEN_NOT_REGISTERED)], ["ghost"])

    assert removed == ["ghost"]
    assert _tokens(db) == ["A"]


def test_failed_delete_does_not_stop_the_others(db, add_token, monkeypatch):
    for token in ("A", "B"):
        add_token(token)
    real_delete = token_hygiene.delete_token_for_user

    def flaky_delete(session, user_id, fcm_token):
        if fcm_token == "A":
            raise OperationalError("DELETE", {}, Exception("database is locked"))
        return real_delete(session, user_id, fcm_token)

    monkeypatch.setattr(token_hygiene, "delete_token_for_user", flaky_delete)
    outcomes = [DeliveryOutcome.failed(MISMATCHED_CREDENTIAL), DeliveryOutcome.failed(INVALID_REGISTRATION_TOKEN)]

    removed = remove_invalid_tokens(db, "user-1", outcomes, ["A", "B"])

    assert removed == ["B"]
    assert _tokens(db) == ["A"]
