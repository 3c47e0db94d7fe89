import pytest

from site_ledger.cache import TtlCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def test_entries_expire_after_ttl(clock):
    cache = TtlCache(30.0, clock=clock)
    cache.set("invoices-list", [1, 2])

    clock.advance(29.9)
    assert cache.get("invoices-list") == [1, 2]
    assert "invoices-list" in cache

    clock.advance(0.1)
    assert cache.get("invoices-list") is None
    assert "invoices-list" not in cache
    assert cache.get("invoices-list", "fallback") == "fallback"


def test_get_or_load_calls_loader_once_per_ttl(clock):
    cache = TtlCache(30.0, clock=clock)
    calls = []

    def loader():
        calls.append(1)
        return len(calls)

    assert cache.get_or_load("bank-transactions-list", loader) == 1
    assert cache.get_or_load("bank-transactions-list", loader) == 1
    clock.advance(31)
    assert cache.get_or_load("bank-transactions-list", loader) == 2
    assert len(calls) == 2


def test_loader_errors_are_not_cached(clock):
    cache = TtlCache(clock=clock)

    def boom():
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError):
        cache.get_or_load("invoices-list", boom)
    assert "invoices-list" not in cache
    assert cache.get_or_load("invoices-list", lambda: "ok") == "ok"


def test_invalidate_by_prefix(clock):
    cache = TtlCache(clock=clock)
    cache.set("bank-transactions-list", 1)
    cache.set("object-details-1", 2)
    cache.set("object-details-2", 3)
    cache.set("invoices-list", 4)

    assert cache.invalidate("object-details") == 2
    assert "object-details-1" not in cache
    assert cache.get("bank-transactions-list") == 1
    assert len(cache) == 2

    assert cache.invalidate() == 2
    assert len(cache) == 0


def test_len_ignores_expired_entries(clock):
    cache = TtlCache(10.0, clock=clock)
    cache.set("a", 1)
    clock.advance(5)
    cache.set("b", 2)
    clock.advance(6)
    assert len(cache) == 1


def test_set_refreshes_timestamp(clock):
    cache = TtlCache(10.0, clock=clock)
    cache.set("a", 1)
    clock.advance(8)
    cache.set("a", 2)
    clock.advance(8)
    assert cache.get("a") == 2


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        TtlCache(0)
    assert TtlCache().ttl_seconds == 30.0
