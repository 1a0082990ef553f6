import itertools
import threading

import pytest

from app.database import build_engine, build_sessionmaker, init_db
from app.exceptions import DuplicatePaymentError
from app.services.payment_store import InMemoryPaymentStore, SqlPaymentStore, UpdateOutcome

TERMINAL = ["PAID", "DECLINED", "ERROR", "CANCELLED"]


@pytest.fixture(params=["memory", "sql"])
def any_store(request, clock, tmp_path):
    if request.param == "memory":
        return InMemoryPaymentStore(clock=clock)
    engine = build_engine(f"sqlite:///{tmp_path / 'payments.db'}")
    init_db(engine)
    return SqlPaymentStore(build_sessionmaker(engine), clock=clock)


def create(store, token="A" * 32, provider_id=None):
    return store.create(
        token=token,
        provider_payment_id=provider_id or token,
        payer_alias="46761234567",
        amount="100.00",
        payment_reference="YMP1",
    )


def test_create_and_get(any_store, clock):
    payment = create(any_store, provider_id="SWISH1")
    assert payment.status == "CREATED"
    assert payment.created_at == clock.now
    assert payment.completed_at is None

    fetched = any_store.get(payment.token)
    assert fetched.provider_payment_id == "SWISH1"
    assert fetched.amount == "100.00"
    assert any_store.get_by_provider_id("SWISH1").token == payment.token
    assert any_store.get("missing") is None


def test_duplicate_token_rejected(any_store):
    create(any_store)
    with pytest.raises(DuplicatePaymentError):
        create(any_store)
    assert len(any_store.list_all()) == 1


def test_terminal_update_stamps_completed_at(any_store, clock):
    create(any_store)
    clock.advance(5)
    outcome, payment = any_store.update_by_provider_id(
        "A" * 32, "PAID", provider_reference="SWISHREF1"
    )
    assert outcome is UpdateOutcome.APPLIED
    assert payment.status == "PAID"
    assert payment.completed_at == clock.now
    assert payment.updated_at is None
    assert payment.provider_reference == "SWISHREF1"
    assert payment.payment_reference == "YMP1"


def test_non_terminal_update_stamps_updated_at(any_store, clock):
    create(any_store)
    clock.advance(1)
    outcome, payment = any_store.update_by_provider_id("A" * 32, "PENDING")
    assert outcome is UpdateOutcome.APPLIED
    assert payment.status == "PENDING"
    assert payment.updated_at == clock.now
    assert payment.completed_at is None


def test_same_status_is_noop(any_store):
    create(any_store)
    outcome, payment = any_store.update_by_provider_id("A" * 32, "CREATED")
    assert outcome is UpdateOutcome.UNCHANGED
    assert payment.updated_at is None

    any_store.update_by_provider_id("A" * 32, "PAID")
    outcome, payment = any_store.update_by_provider_id("A" * 32, "PAID")
    assert outcome is UpdateOutcome.UNCHANGED
    assert payment.status == "PAID"


def test_unknown_provider_id(any_store):
    outcome, payment = any_store.update_by_provider_id("nope", "PAID")
    assert outcome is UpdateOutcome.NOT_FOUND
    assert payment is None


@pytest.mark.parametrize("first,second", list(itertools.permutations(TERMINAL, 2)))
def test_terminal_status_never_changes(first, second, clock):
    store = InMemoryPaymentStore(clock=clock)
    create(store)
    store.update_by_provider_id("A" * 32, first)
    completed_at = store.get("A" * 32).completed_at

    clock.advance(30)
    for status in (second, "CREATED", "PENDING"):
        outcome, payment = store.update_by_provider_id("A" * 32, status)
        assert outcome is UpdateOutcome.REJECTED
        assert payment.status == first
        assert payment.completed_at == completed_at


def test_returned_records_are_copies(store):
    payment = create(store)
    payment.status = "PAID"
    assert store.get(payment.token).status == "CREATED"


def test_list_all_newest_first(any_store, clock):
    create(any_store, token="A" * 32)
    clock.advance(1)
    create(any_store, token="B" * 32)
    assert [p.token for p in any_store.list_all()] == ["B" * 32, "A" * 32]


def test_concurrent_terminal_updates_apply_once(any_store):
    attempts = 40
    create(any_store)
    barrier = threading.Barrier(attempts)
    results = []

    def race(status):
        barrier.wait()
        results.append(any_store.update_by_provider_id("A" * 32, status))

    threads = [
        threading.Thread(target=race, args=(TERMINAL[i % len(TERMINAL)],))
        for i in range(attempts)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    applied = [payment for outcome, payment in results if outcome is UpdateOutcome.APPLIED]
    assert len(results) == attempts
    assert len(applied) == 1

    final = any_store.get("A" * 32)
    assert final.status == applied[0].status
    assert {payment.completed_at for _, payment in results} == {final.completed_at}
