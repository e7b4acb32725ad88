import threading
import time

from quizhub.services.registry import SessionRegistry
from conftest import make_quiz


class FakeClock:
    def __init__(self):
        self.now = 1000.0
        self.delay = 0.0

    def __call__(self):
        if self.delay:
            time.sleep(self.delay)
        return self.now


def test_one_manager_per_user():
    reg = SessionRegistry()
    a = reg.get_or_create("alice")
    assert reg.get_or_create("alice") is a
    assert reg.get_or_create("bob") is not a
    assert len(reg) == 2
    assert reg.get("carol") is None


def test_wall_clock_drives_expiry():
    clock = FakeClock()
    reg = SessionRegistry(clock=clock)
    s = reg.get_or_create("alice")
    s.start(make_quiz(time_limit=1))
    reg.restart_clock("alice")
    clock.now += 30.6
    assert reg.get("alice").time_remaining == 30
    clock.now += 29.5  # fractional carry: 0.6 + 29.5 = 30.1
    s = reg.get("alice")
    assert s.is_completed and s.time_remaining == 0


def test_concurrent_reads_charge_elapsed_time_once():
    clock = FakeClock()
    reg = SessionRegistry(clock=clock)
    s = reg.get_or_create("alice")
    s.start(make_quiz(time_limit=1))
    reg.restart_clock("alice")
    clock.now += 10
    # a slow clock widens the window between reading and writing the sync point
    clock.delay = 0.05
    threads = [threading.Thread(target=reg.get, args=("alice",)) for _ in range(2)]
    for t in threads: t.start()
    for t in threads: t.join()
    assert s.time_remaining == 50
    assert s.elapsed == 10


def test_lock_is_per_user_and_reentrant():
    reg = SessionRegistry()
    assert reg.lock("alice") is reg.lock("alice")
    assert reg.lock("alice") is not reg.lock("bob")
    with reg.lock("alice"):
        reg.get_or_create("alice")
        reg.discard("alice")
    assert reg.get("alice") is None


def test_discard():
    reg = SessionRegistry()
    reg.get_or_create("alice")
    reg.discard("alice")
    reg.discard("alice")
    assert reg.get("alice") is None
