"""Per-turn decision trace and its fire-and-forget persistence.

A Trace is opened at the start of a turn, filled in section by section as
the pipeline runs, finalized exactly once, then handed to a TraceWriter
which persists it in the background.  Persistence failures are logged and
never reach the turn.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from frontline.errors import TraceFinalizedError

logger = logging.getLogger(__name__)

SECTIONS = (
    "input",
    "emotion",
    "decision",
    "entities",
    "flags",
    "behavior",
    "triage",
    "brain2",
    "vendor",
    "handler",
    "output",
    "validation",
    "fallback",
)


@dataclass
class Trace:
    company_id: str
    call_id: str
    turn: int
    trace_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.time)
    sections: dict = field(default_factory=lambda: {name: {} for name in SECTIONS})
    performance: dict = field(default_factory=dict)
    timestamps: dict = field(default_factory=dict)
    finalized: bool = False

    def record(self, section: str, **values) -> None:
        if self.finalized:
            raise TraceFinalizedError(f"trace {self.trace_id} already finalized")
        if section not in self.sections:
            raise KeyError(f"unknown trace section: {section}")
        self.sections[section].update(values)

    def timing(self, stage: str, ms: float) -> None:
        if self.finalized:
            raise TraceFinalizedError(f"trace {self.trace_id} already finalized")
        self.performance[f"{stage}_ms"] = round(ms, 2)

    def mark(self, event: str) -> None:
        if self.finalized:
            raise TraceFinalizedError(f"trace {self.trace_id} already finalized")
        self.timestamps[event] = time.time()

    def finalize(self) -> "Trace":
        if self.finalized:
            raise TraceFinalizedError(f"trace {self.trace_id} already finalized")
        self.timestamps["finalized"] = time.time()
        self.performance["total_ms"] = round((self.timestamps["finalized"] - self.started_at) * 1000, 2)
        self.finalized = True
        return self

    def to_dict(self) -> dict:
        """Flatten for the trace store. Timestamps are seconds relative to turn start."""
        return {
            "trace_id": self.trace_id,
            "company_id": self.company_id,
            "call_id": self.call_id,
            "turn": self.turn,
            "started_at": self.started_at,
            **{name: dict(values) for name, values in self.sections.items()},
            "performance": dict(self.performance),
            "timestamps": {
                event: round(ts - self.started_at, 3) for event, ts in self.timestamps.items()
            },
        }


class TraceWriter:
    """Schedules trace persistence without blocking the caller.

    Keeps a strong reference to every in-flight task so the event loop does
    not garbage-collect it mid-write.
    """

    def __init__(self, store):
        self.store = store
        self._pending: set[asyncio.Task] = set()

    def submit(self, trace: Trace) -> asyncio.Task | None:
        if self.store is None:
            return None
        try:
            task = asyncio.get_running_loop().create_task(self._write(trace))
        except RuntimeError as e:
            logger.error("Cannot schedule trace %s: %s", trace.trace_id, e)
            return None
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, trace: Trace) -> None:
        try:
            await self.store.log_turn(trace.to_dict())
        except Exception as e:
            logger.error("Failed to persist trace %s for %s: %s", trace.trace_id, trace.call_id, e)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all in-flight writes. Used at shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
