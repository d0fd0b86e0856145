"""Tests for the background pairing-code loop."""

from __future__ import annotations

import threading
import time

from bankidkit.core.errors import PairingCodeError
from bankidkit.pairing.codes import PairingCodeGenerator, pairing_payload, render_text
from bankidkit.pairing.loop import PairingCodeLoop

TOKEN = "qst-1"
SECRET = "qss-1"


def _generator(renderer=render_text) -> PairingCodeGenerator:
    return PairingCodeGenerator(TOKEN, SECRET, renderer=renderer)


class Recorder:
    def __init__(self) -> None:
        self.codes: list[tuple[str, str]] = []
        self.lock = threading.Lock()

    def __call__(self, code, order_id) -> None:
        with self.lock:
            self.codes.append((code, order_id))

    def snapshot(self) -> list[tuple[str, str]]:
        with self.lock:
            return list(self.codes)


class TestPairingCodeLoop:
    def test_emits_codes_in_order(self, waiter):
        rec = Recorder()
        loop = PairingCodeLoop(_generator(), "order-1", rec, interval=0.01)
        loop.start()
        try:
            assert waiter(lambda: len(rec.snapshot()) >= 3)
        finally:
            loop.stop()

        codes = rec.snapshot()
        assert codes[:3] == [(pairing_payload(TOKEN, SECRET, n), "order-1") for n in range(3)]
        assert loop.emitted == len(codes)

    def test_first_code_after_one_interval(self):
        rec = Recorder()
        loop = PairingCodeLoop(_generator(), "order-1", rec, interval=0.5)
        loop.start()
        try:
            time.sleep(0.1)
            assert rec.snapshot() == []
        finally:
            loop.stop()

    def test_nothing_emitted_after_stop(self, waiter):
        rec = Recorder()
        loop = PairingCodeLoop(_generator(), "order-1", rec, interval=0.01)
        loop.start()
        assert waiter(lambda: len(rec.snapshot()) >= 1)
        loop.stop()
        count = len(rec.snapshot())
        time.sleep(0.1)
        assert len(rec.snapshot()) == count
        assert loop.running is False

    def test_stop_is_idempotent(self):
        loop = PairingCodeLoop(_generator(), "order-1", Recorder(), interval=0.01)
        loop.start()
        loop.stop()
        loop.stop()
        assert loop.running is False

    def test_stop_waits_for_delivery(self, waiter):
        entered = threading.Event()
        release = threading.Event()
        delivered = []

        def slow(code, order_id):
            entered.set()
            release.wait(2)
            delivered.append(code)

        loop = PairingCodeLoop(_generator(), "order-1", slow, interval=0.01)
        loop.start()
        assert entered.wait(2)

        stopper = threading.Thread(target=loop.stop)
        stopper.start()
        time.sleep(0.05)
        assert stopper.is_alive()
        release.set()
        stopper.join(2)
        assert not stopper.is_alive()
        assert len(delivered) == 1

    def test_callback_error_does_not_stop_loop(self, waiter):
        calls = []

        def flaky(code, order_id):
            calls.append(code)
            if len(calls) == 1:
                msg = "consumer bug"
                raise RuntimeError(msg)

        loop = PairingCodeLoop(_generator(), "order-1", flaky, interval=0.01)
        loop.start()
        try:
            assert waiter(lambda: len(calls) >= 3)
        finally:
            loop.stop()

    def test_generator_error_reported_once(self, waiter):
        def broken(payload, scale):
            msg = "no encoder"
            raise RuntimeError(msg)

        errors = []
        rec = Recorder()
        loop = PairingCodeLoop(
            _generator(renderer=broken),
            "order-1",
            rec,
            on_error=errors.append,
            interval=0.01,
        )
        loop.start()
        assert waiter(lambda: len(errors) == 1)
        time.sleep(0.05)
        assert len(errors) == 1
        assert isinstance(errors[0], PairingCodeError)
        assert rec.snapshot() == []
        assert loop.running is False
        loop.stop()
