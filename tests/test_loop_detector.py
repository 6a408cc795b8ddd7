import asyncio

import pytest

from frontline.loop_detector import LoopDetector, TTLStore, response_signature


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestResponseSignature:
    def test_names_are_normalized(self):
        assert response_signature("Thanks, John. What's the service address?") == response_signature(
            "Thanks, Jane. What's the service address?"
        )

    def test_numbers_and_times_are_normalized(self):
        a = response_signature("We have an opening at 3pm, call us at 512-555-0100.")
        b = response_signature("We have an opening at 10am, call us at 512-555-0199.")
        assert a == b

    def test_different_content_differs(self):
        assert response_signature("What's your name?") != response_signature("What's your address?")

    def test_empty(self):
        assert response_signature("") == ""

    def test_truncated(self):
        assert len(response_signature("word " * 100)) <= 100


class TestLoopDetector:
    def test_third_identical_response_is_a_loop(self):
        detector = LoopDetector()
        for _ in range(2):
            detector.record_response("call_1", "Could you tell me more about the issue?")
        assert detector.check_for_loop("call_1").is_looping is False
        detector.record_response("call_1", "Could you tell me more about the issue?")
        check = detector.check_for_loop("call_1")
        assert check.is_looping is True
        assert check.count == 2

    def test_different_response_resets(self):
        detector = LoopDetector()
        for _ in range(3):
            detector.record_response("call_1", "Could you tell me more about the issue?")
        detector.record_response("call_1", "Great. What's the service address?")
        assert detector.check_for_loop("call_1").count == 0

    def test_pending_text_counts(self):
        detector = LoopDetector()
        detector.record_response("call_1", "Same line again, please.")
        detector.record_response("call_1", "Same line again, please.")
        assert detector.check_for_loop("call_1", pending_text="Same line again, please.").is_looping

    def test_calls_are_isolated(self):
        detector = LoopDetector()
        for _ in range(3):
            detector.record_response("call_1", "Could you repeat that?")
        assert detector.check_for_loop("call_2").is_looping is False

    def test_unknown_call(self):
        check = LoopDetector().check_for_loop("nobody")
        assert check.count == 0
        assert check.is_looping is False

    def test_clear(self):
        detector = LoopDetector()
        detector.record_response("call_1", "Could you repeat that?")
        detector.clear("call_1")
        assert detector.history("call_1") == []


class TestTTLStore:
    def test_history_is_bounded(self):
        store = TTLStore(maxlen=5)
        for i in range(8):
            store.append("call_1", i)
        assert store.get("call_1") == [3, 4, 5, 6, 7]

    def test_idle_key_expires(self):
        clock = FakeClock()
        store = TTLStore(ttl_seconds=60, clock=clock)
        store.append("call_1", "a")
        clock.now += 61
        assert store.get("call_1") == []

    def test_sweep_removes_idle_keys(self):
        clock = FakeClock()
        store = TTLStore(ttl_seconds=60, clock=clock)
        store.append("old", "a")
        clock.now += 30
        store.append("fresh", "b")
        clock.now += 31
        assert store.sweep() == 1
        assert len(store) == 1
        assert store.get("fresh") == ["b"]


@pytest.mark.asyncio
async def test_sweeper_runs_periodically():
    clock = FakeClock()
    detector = LoopDetector(TTLStore(ttl_seconds=1, clock=clock))
    detector.record_response("call_1", "Could you repeat that?")
    clock.now += 5
    task = asyncio.create_task(detector.run_sweeper(interval_seconds=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    assert len(detector.store) == 0
