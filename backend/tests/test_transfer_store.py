from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from stusave.services.transfer_errors import (
    TransferExpiredError,
    TransferNotFoundError,
    TransferStoreError,
)
from stusave.services.transfer_store import ExchangeStore


def _run(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _store(clock: FakeClock | None = None, **kwargs) -> ExchangeStore:
    return ExchangeStore(clock=clock or FakeClock(), **kwargs)


def test_register_then_redeem_returns_identical_payload_once() -> None:
    store = _store()
    payload = {
        "name": "Ana",
        "budget": 500,
        "spendings": [{"id": "1", "amount": 12.5, "description": "café ☕", "tags": []}],
        "lendBorrow": [],
        "nested": {"deep": [[1, 2], {"k": None}]},
    }

    transfer_id = store.register(payload)

    assert store.redeem(transfer_id) == payload
    with pytest.raises(TransferNotFoundError):
        store.redeem(transfer_id)
    assert len(store) == 0


def test_redeemed_payload_is_a_copy_not_the_registered_object() -> None:
    store = _store()
    payload = {"spendings": [], "budget": 1}

    transfer_id = store.register(payload)
    payload["spendings"].append({"amount": 99})

    assert store.redeem(transfer_id) == {"spendings": [], "budget": 1}


def test_ids_use_configured_alphabet_and_length() -> None:
    store = _store(id_length=8, id_alphabet="xyz")

    ids = {store.register({"n": n}) for n in range(20)}

    assert len(ids) == 20
    for transfer_id in ids:
        assert len(transfer_id) == 8
        assert set(transfer_id) <= set("xyz")


def test_redeem_after_ttl_is_expired_not_not_found() -> None:
    clock = FakeClock()
    store = _store(clock)
    transfer_id = store.register({"spendings": [], "budget": 500})

    clock.advance(300.001)

    with pytest.raises(TransferExpiredError):
        store.redeem(transfer_id)
    # Expiry removed the record, so it is simply unknown afterwards.
    with pytest.raises(TransferNotFoundError):
        store.redeem(transfer_id)


def test_redeem_exactly_at_ttl_boundary_still_succeeds() -> None:
    clock = FakeClock()
    store = _store(clock)
    transfer_id = store.register({"budget": 1})

    clock.advance(300)

    assert store.redeem(transfer_id) == {"budget": 1}


def test_expiry_is_checked_at_read_time_without_sweep() -> None:
    clock = FakeClock()
    store = _store(clock, ttl_seconds=5)
    transfer_id = store.register([1, 2, 3])

    clock.advance(6)
    assert len(store) == 1

    with pytest.raises(TransferExpiredError):
        store.redeem(transfer_id)


def test_unknown_id_is_not_found_and_never_mutates_state() -> None:
    store = _store()
    kept = store.register({"budget": 1})

    for _ in range(3):
        with pytest.raises(TransferNotFoundError):
            store.redeem("zzzzzz")

    assert len(store) == 1
    assert store.redeem(kept) == {"budget": 1}


def test_concurrent_redeems_only_one_wins() -> None:
    store = _store()
    transfer_id = store.register({"spendings": [], "budget": 500})
    workers = 16
    barrier = threading.Barrier(workers)

    def attempt():
        barrier.wait()
        try:
            return store.redeem(transfer_id)
        except TransferNotFoundError:
            return "not-found"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda _: attempt(), range(workers)))

    winners = [result for result in results if result != "not-found"]
    assert winners == [{"spendings": [], "budget": 500}]
    assert results.count("not-found") == workers - 1


def test_collision_with_live_record_exhausts_and_raises() -> None:
    store = _store(id_length=1, id_alphabet="a", max_id_attempts=3)
    assert store.register({"first": True}) == "a"

    with pytest.raises(TransferStoreError):
        store.register({"second": True})

    assert store.redeem("a") == {"first": True}


def test_expired_record_id_can_be_reissued() -> None:
    clock = FakeClock()
    store = _store(clock, id_length=1, id_alphabet="a")
    store.register({"old": True})
    clock.advance(301)

    assert store.register({"new": True}) == "a"
    assert store.redeem("a") == {"new": True}


def test_non_serializable_payload_is_store_error() -> None:
    store = _store()

    with pytest.raises(TransferStoreError):
        store.register({"bad": object()})

    assert len(store) == 0


def test_sweep_removes_only_expired_records() -> None:
    clock = FakeClock()
    store = _store(clock)
    old_id = store.register({"old": True})
    clock.advance(200)
    fresh_id = store.register({"fresh": True})
    clock.advance(150)

    assert store.sweep() == 1
    assert len(store) == 1
    with pytest.raises(TransferNotFoundError):
        store.redeem(old_id)
    assert store.redeem(fresh_id) == {"fresh": True}


def test_invalid_configuration_is_rejected() -> None:
    with pytest.raises(ValueError):
        ExchangeStore(id_length=0)
    with pytest.raises(ValueError):
        ExchangeStore(id_alphabet="")
    with pytest.raises(ValueError):
        ExchangeStore(max_id_attempts=0)


def test_background_sweep_runs_until_stopped() -> None:
    clock = FakeClock()

    async def scenario():
        store = _store(clock, sweep_interval_seconds=0.01)
        store.register({"budget": 1})
        clock.advance(301)

        store.start()
        store.start()  # second start is a no-op
        await asyncio.sleep(0.05)
        remaining = len(store)
        await store.stop()
        await store.stop()
        return store, remaining

    store, remaining = _run(scenario())

    assert remaining == 0
    assert store._sweep_task is None


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_numbers_are_store_errors(value) -> None:
    store = _store()

    with pytest.raises(TransferStoreError):
        store.register({"spendings": [], "budget": value})

    assert len(store) == 0
