"""Bounded-concurrency batch runner used for bulk resume upload and batch profile builds.

A fixed pool of ``min(concurrency, len(items))`` worker tasks pulls item
indexes from one FIFO queue, so a slow item never holds back unrelated fast
ones and the number of in-flight calls can never exceed ``concurrency``.

Bookkeeping happens synchronously between awaits, which makes each
"item finished -> record status -> decide whether the batch is done" step
atomic under the event loop. ``remaining`` counts queued plus in-flight items
and is the only thing consulted for completion.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Generic, Literal, TypeVar

from hireflow.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")
ItemState = Literal["pending", "processing", "completed", "failed"]


@dataclass(slots=True)
class BatchItemStatus:
    key: str
    label: str
    status: ItemState = "pending"
    error: str | None = None
    result: Any = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def duration_sec(self) -> float | None:
        if self.started_at is None or self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()


@dataclass(slots=True)
class BatchStats:
    total: int = 0
    completed: int = 0
    failed: int = 0
    processing: int = 0
    pending: int = 0
    avg_seconds: float = 0.0


@dataclass(slots=True)
class BatchReport:
    statuses: list[BatchItemStatus] = field(default_factory=list)
    stats: BatchStats = field(default_factory=BatchStats)
    progress: float = 0.0
    elapsed_sec: float = 0.0
    max_in_flight: int = 0


def _now() -> datetime:
    return datetime.now(UTC)


class BatchOrchestrator(Generic[T]):
    def __init__(
        self,
        items: Sequence[T],
        process: Callable[[T], Awaitable[Any]],
        *,
        concurrency: int = 3,
        key: Callable[[T], str] = str,
        label: Callable[[T], str] | None = None,
        on_update: Callable[[BatchItemStatus], None] | None = None,
        on_complete: Callable[[BatchReport], None] | None = None,
    ):
        if not isinstance(concurrency, int) or concurrency < 1:
            raise ValidationError(f"concurrency must be an integer >= 1, got {concurrency!r}")

        self.items: list[T] = list(items)
        self.process = process
        self.concurrency = concurrency
        self._key = key
        self._label = label or key
        self.on_update = on_update
        self.on_complete = on_complete

        self._statuses = [
            BatchItemStatus(key=self._key(item), label=self._label(item)) for item in self.items
        ]
        self._resume_gate = asyncio.Event()
        self._resume_gate.set()
        self._done = asyncio.Event()
        self._in_flight = 0
        self._remaining = len(self.items)
        self._max_in_flight = 0
        self._started = False
        self._elapsed = 0.0

    @property
    def statuses(self) -> list[BatchItemStatus]:
        return [dataclasses.replace(status) for status in self._statuses]

    @property
    def is_paused(self) -> bool:
        return not self._resume_gate.is_set()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def max_in_flight(self) -> int:
        return self._max_in_flight

    @property
    def is_done(self) -> bool:
        return self._started and self._remaining == 0

    @property
    def progress(self) -> float:
        if not self._statuses:
            return 0.0
        finished = sum(1 for status in self._statuses if status.status in {"completed", "failed"})
        return finished / len(self._statuses) * 100

    def stats(self) -> BatchStats:
        stats = BatchStats(total=len(self._statuses))
        durations: list[float] = []
        for status in self._statuses:
            if status.status == "completed":
                stats.completed += 1
                if status.duration_sec is not None:
                    durations.append(status.duration_sec)
            elif status.status == "failed":
                stats.failed += 1
            elif status.status == "processing":
                stats.processing += 1
            else:
                stats.pending += 1
        if durations:
            stats.avg_seconds = sum(durations) / len(durations)
        return stats

    def report(self) -> BatchReport:
        return BatchReport(
            statuses=self.statuses,
            stats=self.stats(),
            progress=self.progress,
            elapsed_sec=self._elapsed,
            max_in_flight=self._max_in_flight,
        )

    def pause(self) -> None:
        """Stop dispatching queued items; in-flight items run to completion."""
        if not self.is_paused:
            logger.info("Batch paused in_flight=%s remaining=%s", self._in_flight, self._remaining)
        self._resume_gate.clear()

    def resume(self) -> None:
        if self.is_paused:
            logger.info("Batch resumed remaining=%s", self._remaining)
        self._resume_gate.set()

    async def run(self) -> BatchReport:
        if self._started:
            raise RuntimeError("batch run already started; use retry_failed() for a new run")
        self._started = True
        started = time.monotonic()

        queue: asyncio.Queue[int] = asyncio.Queue()
        for index in range(len(self.items)):
            queue.put_nowait(index)

        if self._remaining == 0:
            self._done.set()

        logger.info("Batch started items=%s concurrency=%s", len(self.items), self.concurrency)
        workers = [
            asyncio.create_task(self._worker(queue))
            for _ in range(min(self.concurrency, len(self.items)))
        ]
        try:
            await self._done.wait()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            self._elapsed = time.monotonic() - started

        report = self.report()
        logger.info(
            "Batch finished completed=%s failed=%s elapsed=%.2fs",
            report.stats.completed,
            report.stats.failed,
            report.elapsed_sec,
        )
        self._notify(self.on_complete, report)
        return report

    def retry_failed(self) -> BatchOrchestrator[T]:
        failed = [self.items[index] for index, status in enumerate(self._statuses) if status.status == "failed"]
        return BatchOrchestrator(
            failed,
            self.process,
            concurrency=self.concurrency,
            key=self._key,
            label=self._label,
            on_update=self.on_update,
            on_complete=self.on_complete,
        )

    async def _worker(self, queue: asyncio.Queue[int]) -> None:
        while True:
            await self._resume_gate.wait()
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            self._start(index)
            try:
                result = await self.process(self.items[index])
            except Exception as exc:
                logger.warning("Batch item %s failed: %s", self._statuses[index].key, exc)
                self._finish(index, "failed", error=str(exc) or exc.__class__.__name__)
            else:
                self._finish(index, "completed", result=result)

    def _start(self, index: int) -> None:
        self._in_flight += 1
        self._max_in_flight = max(self._max_in_flight, self._in_flight)
        self._replace(index, status="processing", started_at=_now())

    def _finish(self, index: int, state: ItemState, *, error: str | None = None, result: Any = None) -> None:
        self._replace(index, status=state, error=error, result=result, ended_at=_now())
        self._in_flight -= 1
        self._remaining -= 1
        if self._remaining == 0:
            self._done.set()

    def _replace(self, index: int, **changes: Any) -> None:
        updated = dataclasses.replace(self._statuses[index], **changes)
        self._statuses[index] = updated
        self._notify(self.on_update, dataclasses.replace(updated))

    @staticmethod
    def _notify(hook: Callable[[Any], None] | None, value: Any) -> None:
        if hook is None:
            return
        try:
            hook(value)
        except Exception:
            logger.exception("Batch hook %r raised", hook)


def batch_build_profiles(
    client: Any,
    candidate_ids: Sequence[int],
    *,
    job_id: int | None = None,
    concurrency: int = 3,
    labels: dict[int, str] | None = None,
    on_update: Callable[[BatchItemStatus], None] | None = None,
) -> BatchOrchestrator[int]:
    async def build(candidate_id: int) -> dict[str, Any]:
        return await client.build_profile(candidate_id, job_id=job_id)

    names = labels or {}
    return BatchOrchestrator(
        candidate_ids,
        build,
        concurrency=concurrency,
        key=str,
        label=lambda candidate_id: names.get(candidate_id, f"candidate {candidate_id}"),
        on_update=on_update,
    )


def bulk_upload_resumes(
    client: Any,
    paths: Sequence[Path],
    *,
    concurrency: int = 3,
    on_update: Callable[[BatchItemStatus], None] | None = None,
) -> BatchOrchestrator[Path]:
    async def upload(path: Path) -> dict[str, Any]:
        return await client.upload_resume(path)

    return BatchOrchestrator(
        paths,
        upload,
        concurrency=concurrency,
        key=str,
        label=lambda path: path.name,
        on_update=on_update,
    )
