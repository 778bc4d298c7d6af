import threading
import time

import pytest

from agroweather.cache import SingleFlight


def test_concurrent_callers_share_one_execution():
    flight = SingleFlight()
    calls = []
    started = threading.Event()
    release = threading.Event()

    def slow():
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return "value"

    results = []

    def worker():
        results.append(flight.do("k", slow))

    leader = threading.Thread(target=worker)
    leader.start()
    assert started.wait(timeout=5)

    followers = [threading.Thread(target=worker) for _ in range(4)]
    for t in followers:
        t.start()
    # give followers time to queue behind the leader
    time.sleep(0.05)
    release.set()
    for t in [leader, *followers]:
        t.join(timeout=5)

    assert calls == [1]
    assert results == ["value"] * 5
    assert flight.in_flight() == 0


def test_waiters_receive_the_same_exception():
    flight = SingleFlight()
    started = threading.Event()
    release = threading.Event()
    errors = []

    def boom():
        started.set()
        release.wait(timeout=5)
        raise RuntimeError("fetch failed")

    def worker():
        try:
            flight.do("k", boom)
        except RuntimeError as exc:
            errors.append(str(exc))

    leader = threading.Thread(target=worker)
    leader.start()
    assert started.wait(timeout=5)
    follower = threading.Thread(target=worker)
    follower.start()
    time.sleep(0.05)
    release.set()
    leader.join(timeout=5)
    follower.join(timeout=5)

    assert errors == ["fetch failed", "fetch failed"]


def test_key_released_after_completion():
    flight = SingleFlight()
    counter = iter(range(10))
    assert flight.do("k", lambda: next(counter)) == 0
    assert flight.do("k", lambda: next(counter)) == 1


def test_distinct_keys_run_independently():
    flight = SingleFlight()
    assert flight.do("a", lambda: "A") == "A"
    assert flight.do("b", lambda: "B") == "B"
    with pytest.raises(ValueError):
        flight.do("c", lambda: (_ for _ in ()).throw(ValueError("bad")))
