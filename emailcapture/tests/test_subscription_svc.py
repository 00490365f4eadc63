import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from emailcapture.domain.errors import Conflict, InternalError, ServiceUnavailable, ValidationError
from emailcapture.services.connection_guard import ConnectionState
from emailcapture.services.subscription_svc import SubscriptionService

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture()
def service(fake_store, make_guard):
    return SubscriptionService(fake_store, make_guard(fake_store), clock=lambda: FIXED_NOW)


def test_subscribe_new_email(service, fake_store):
    res = service.subscribe("new@site.com")
    assert res.success is True
    assert res.status_code == 200
    assert res.email == "new@site.com"
    assert "Thank you for subscribing" in res.message
    assert fake_store.records == {"new@site.com": FIXED_NOW}


def test_second_subscription_conflicts(service, fake_store):
    service.subscribe("new@site.com")
    with pytest.raises(Conflict) as ei:
        service.subscribe("new@site.com")
    assert ei.value.public_message == "This email is already subscribed!"
    assert ei.value.status_code == 400
    # pre-check caught it, no insert attempted
    assert fake_store.insert_calls == 1


def test_normalized_forms_are_the_same_subscriber(service, fake_store):
    service.subscribe("  A@Example.COM ")
    with pytest.raises(Conflict):
        service.subscribe("a@example.com")
    assert list(fake_store.records) == ["a@example.com"]


def test_distinct_emails_both_persist(service, fake_store):
    service.subscribe("one@site.com")
    service.subscribe("two@site.com")
    assert sorted(fake_store.records) == ["one@site.com", "two@site.com"]


@pytest.mark.parametrize("raw", ["", None, "not-an-email", "a@b", 7])
def test_invalid_input_never_reaches_store(service, fake_store, raw):
    with pytest.raises(ValidationError):
        service.subscribe(raw)
    assert fake_store.connect_calls == 0
    assert fake_store.insert_calls == 0


def test_unique_constraint_violation_maps_to_conflict(fake_store, make_guard):
    # pre-check blind, as when two requests race past it
    fake_store.skip_precheck = True
    service = SubscriptionService(fake_store, make_guard(fake_store))
    service.subscribe("race@site.com")
    with pytest.raises(Conflict) as ei:
        service.subscribe("race@site.com")
    assert "unique constraint" in ei.value.detail
    assert fake_store.insert_calls == 2


@pytest.mark.parametrize("skip_precheck", [False, True])
def test_parallel_duplicates_one_winner(fake_store, make_guard, skip_precheck):
    fake_store.skip_precheck = skip_precheck
    guard = make_guard(fake_store)
    guard.connect()
    service = SubscriptionService(fake_store, guard)
    n = 16

    def attempt(_):
        try:
            service.subscribe("Same@Site.com ")
            return "ok"
        except Conflict:
            return "conflict"

    with ThreadPoolExecutor(max_workers=n) as pool:
        outcomes = list(pool.map(attempt, range(n)))

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == n - 1
    assert fake_store.count() == 1


def test_unreachable_backend_is_service_unavailable(fake_store, make_guard, sleeps):
    fake_store.fail_connect = True
    service = SubscriptionService(fake_store, make_guard(fake_store, max_attempts=4))
    with pytest.raises(ServiceUnavailable) as ei:
        service.subscribe("new@site.com")
    assert ei.value.status_code == 503
    assert fake_store.connect_calls == 4
    assert len(sleeps.calls) == 3
    assert fake_store.records == {}


def test_connection_lost_mid_request(fake_store, make_guard, timers):
    guard = make_guard(fake_store)
    service = SubscriptionService(fake_store, guard)
    service.subscribe("first@site.com")

    fake_store.fail_ops = True
    with pytest.raises(ServiceUnavailable):
        service.subscribe("second@site.com")
    assert guard.state is ConnectionState.DISCONNECTED
    assert len(timers.created) == 1


def test_unexpected_error_is_internal(fake_store, make_guard, caplog):
    def broken_insert(email, subscribed_at):
        raise KeyError("write concern")

    fake_store.insert = broken_insert
    service = SubscriptionService(fake_store, make_guard(fake_store))
    with caplog.at_level(logging.ERROR):
        with pytest.raises(InternalError) as ei:
            service.subscribe("new@site.com")
    assert isinstance(ei.value.__cause__, KeyError)
    assert ei.value.status_code == 500
    assert ei.value.public_message.startswith("An error occurred")
    assert "subscription failed" in caplog.text


def test_operation_log_line(service, caplog):
    with caplog.at_level(logging.INFO, logger="emailcapture.oplog"):
        service.subscribe("new@site.com")
    rec = [r for r in caplog.records if r.name == "emailcapture.oplog"][-1]
    assert '"action": "SUBSCRIBE"' in rec.getMessage()
    assert '"result": "OK"' in rec.getMessage()
    assert '"entity_id": "new@site.com"' in rec.getMessage()
