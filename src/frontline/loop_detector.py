"""Per-call memory of what the agent just said, used to catch repetition.

Each call keeps a short ring buffer of normalized response signatures.  Two
responses that differ only by the caller's name, a phone number, a time or
a date produce the same signature, so "Thanks John, what's your address?"
and "Thanks Jane, what's your address?" count as the same line.
"""

import asyncio
import logging
import re
import threading
import time
from collections import deque
from dataclasses import dataclass

logger = logging.getLogger(__name__)

HISTORY_SIZE = 5
TTL_SECONDS = 30 * 60
LOOP_THRESHOLD = 2
SIGNATURE_CHARS = 100

_PHONE = re.compile(r"\+?\d[\d\s().-]{6,}\d")
_TIME = re.compile(r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.)?(?=\W|$)", re.IGNORECASE)
_DATE = re.compile(
    r"\b(?:\d{1,2}/\d{1,2}(?:/\d{2,4})?|(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.? \d{1,2}(?:st|nd|rd|th)?"
    r"|monday|tuesday|wednesday|thursday|friday|saturday|sunday|today|tomorrow)\b",
    re.IGNORECASE,
)
_NUMBER = re.compile(r"\b\d+\b")
# A capitalized word that does not start a sentence is treated as a name.
_NAME = re.compile(r"(?<=[a-z,] )[A-Z][a-z]+\b")
_NON_WORD = re.compile(r"[^\w{} ]+")
_SPACES = re.compile(r"\s+")


def response_signature(text: str) -> str:
    if not text:
        return ""
    sig = _PHONE.sub(" {phone} ", text)
    sig = _DATE.sub(" {date} ", sig)
    sig = _TIME.sub(" {time} ", sig)
    sig = _NUMBER.sub(" {num} ", sig)
    sig = _NAME.sub("{name}", sig)
    sig = _NON_WORD.sub(" ", sig.lower())
    sig = _SPACES.sub(" ", sig).strip()
    return sig[:SIGNATURE_CHARS]


class TTLStore:
    """Thread-safe dict of per-key bounded deques that expire after inactivity."""

    def __init__(self, ttl_seconds: float = TTL_SECONDS, maxlen: int = HISTORY_SIZE, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.maxlen = maxlen
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, deque] = {}
        self._touched: dict[str, float] = {}

    def append(self, key: str, value) -> None:
        now = self._clock()
        with self._lock:
            self._expire_key(key, now)
            history = self._entries.setdefault(key, deque(maxlen=self.maxlen))
            history.append((value, now))
            self._touched[key] = now

    def get(self, key: str) -> list:
        now = self._clock()
        with self._lock:
            self._expire_key(key, now)
            return [value for value, _ in self._entries.get(key, ())]

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._touched.pop(key, None)

    def sweep(self) -> int:
        """Drop every expired key. Returns the number of keys removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, t in self._touched.items() if now - t >= self.ttl_seconds]
            for key in stale:
                self._entries.pop(key, None)
                self._touched.pop(key, None)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expire_key(self, key: str, now: float) -> None:
        touched = self._touched.get(key)
        if touched is not None and now - touched >= self.ttl_seconds:
            self._entries.pop(key, None)
            self._touched.pop(key, None)
            return
        history = self._entries.get(key)
        if history:
            while history and now - history[0][1] >= self.ttl_seconds:
                history.popleft()


@dataclass
class LoopCheck:
    count: int
    is_looping: bool


class LoopDetector:
    def __init__(self, store: TTLStore | None = None, threshold: int = LOOP_THRESHOLD):
        self.store = store or TTLStore()
        self.threshold = threshold

    def record_response(self, call_id: str, text: str) -> None:
        signature = response_signature(text)
        if not call_id or not signature:
            return
        self.store.append(call_id, signature)

    def history(self, call_id: str) -> list[str]:
        return self.store.get(call_id)

    def check_for_loop(self, call_id: str, pending_text: str | None = None) -> LoopCheck:
        """Count how many earlier entries the newest signature repeats back-to-back.

        The same line sent three times in a row gives count=2 (looping).
        With pending_text the count includes the response about to be sent,
        so callers can check before recording.
        """
        signatures = self.store.get(call_id)
        if pending_text is not None:
            pending = response_signature(pending_text)
            if pending:
                signatures = signatures + [pending]
        if not signatures:
            return LoopCheck(count=0, is_looping=False)
        latest = signatures[-1]
        run = 0
        for signature in reversed(signatures):
            if signature != latest:
                break
            run += 1
        repeats = run - 1
        if repeats >= self.threshold:
            logger.warning("Loop detected for call %s: %d identical responses", call_id, repeats)
        return LoopCheck(count=repeats, is_looping=repeats >= self.threshold)

    def clear(self, call_id: str) -> None:
        self.store.delete(call_id)

    def sweep(self) -> int:
        removed = self.store.sweep()
        if removed:
            logger.debug("Loop detector swept %d idle calls", removed)
        return removed

    async def run_sweeper(self, interval_seconds: float = 300.0) -> None:
        """Periodic sweep; run as a background task for the life of the process."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error("Loop detector sweep failed: %s", e)
