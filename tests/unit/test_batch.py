from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from hireflow.core.batch import BatchOrchestrator, batch_build_profiles, bulk_upload_resumes
from hireflow.errors import ItemOperationError, ValidationError


def test_in_flight_never_exceeds_concurrency() -> None:
    active = 0
    peak = 0

    async def process(item: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01 * (item % 3 + 1))
        active -= 1
        return item * 2

    orchestrator = BatchOrchestrator(list(range(10)), process, concurrency=3)
    report = asyncio.run(orchestrator.run())

    assert peak <= 3
    assert report.max_in_flight == 3
    assert report.stats.completed == 10
    assert [status.result for status in report.statuses] == [item * 2 for item in range(10)]
    assert orchestrator.is_done
    assert orchestrator.remaining == 0


def test_mixed_outcomes_complete_batch_with_failures_recorded() -> None:
    async def process(item: str) -> str:
        await asyncio.sleep(0.01)
        if item.startswith("bad"):
            raise ItemOperationError("500: boom", status_code=500)
        return item.upper()

    completed_reports = []
    orchestrator = BatchOrchestrator(
        ["ok-1", "bad-1", "ok-2", "bad-2"],
        process,
        concurrency=2,
        on_complete=completed_reports.append,
    )
    report = asyncio.run(orchestrator.run())

    assert report.progress == 100
    assert report.stats.completed == 2
    assert report.stats.failed == 2
    assert report.stats.pending == 0
    failed = [status for status in report.statuses if status.status == "failed"]
    assert [status.key for status in failed] == ["bad-1", "bad-2"]
    assert failed[0].error == "500: boom"
    assert len(completed_reports) == 1


def test_runtime_is_bounded_by_concurrent_slots() -> None:
    slot = 0.1

    async def process(item: int) -> int:
        await asyncio.sleep(slot)
        return item

    report = asyncio.run(BatchOrchestrator([1, 2, 3, 4], process, concurrency=2).run())

    assert report.stats.completed == 4
    assert report.elapsed_sec < 3 * slot


def test_average_duration_counts_completed_items_only() -> None:
    async def process(item: str) -> str:
        if item.startswith("bad"):
            await asyncio.sleep(0.2)
            raise ItemOperationError("500: slow failure", status_code=500)
        await asyncio.sleep(0.01)
        return item

    orchestrator = BatchOrchestrator(["ok-1", "bad-1", "ok-2", "bad-2"], process, concurrency=4)
    report = asyncio.run(orchestrator.run())

    completed = [status.duration_sec for status in report.statuses if status.status == "completed"]
    assert report.stats.failed == 2
    assert report.stats.avg_seconds == pytest.approx(sum(completed) / len(completed))
    assert report.stats.avg_seconds < 0.15


def test_exception_without_message_records_class_name() -> None:
    async def process(item: int) -> None:
        raise KeyError()

    report = asyncio.run(BatchOrchestrator([1], process).run())
    assert report.statuses[0].error == "KeyError"


def test_status_updates_are_copies_in_item_order() -> None:
    updates = []

    async def process(item: int) -> int:
        await asyncio.sleep(0)
        return item

    orchestrator = BatchOrchestrator([1, 2], process, concurrency=1, on_update=updates.append)
    asyncio.run(orchestrator.run())

    assert [(update.key, update.status) for update in updates] == [
        ("1", "processing"),
        ("1", "completed"),
        ("2", "processing"),
        ("2", "completed"),
    ]
    updates[0].status = "failed"
    assert orchestrator.statuses[0].status == "completed"


def test_failing_hook_does_not_break_the_batch() -> None:
    def explode(_status) -> None:
        raise RuntimeError("hook failure")

    async def process(item: int) -> int:
        return item

    report = asyncio.run(BatchOrchestrator([1, 2, 3], process, on_update=explode).run())
    assert report.stats.completed == 3


def test_pause_holds_queued_items_until_resume() -> None:
    started: list[int] = []

    async def scenario() -> tuple[list[int], int]:
        release = asyncio.Event()

        async def process(item: int) -> int:
            started.append(item)
            await release.wait()
            return item

        orchestrator = BatchOrchestrator([1, 2, 3, 4], process, concurrency=2)
        run_task = asyncio.create_task(orchestrator.run())
        await asyncio.sleep(0.01)
        orchestrator.pause()
        assert orchestrator.is_paused
        release.set()
        await asyncio.sleep(0.02)
        during_pause = list(started)
        remaining_while_paused = orchestrator.remaining
        assert [status.status for status in orchestrator.statuses] == ["completed", "completed", "pending", "pending"]
        assert orchestrator.in_flight == 0

        orchestrator.resume()
        report = await run_task
        assert report.stats.completed == 4
        return during_pause, remaining_while_paused

    during_pause, remaining_while_paused = asyncio.run(scenario())
    assert during_pause == [1, 2]
    assert remaining_while_paused == 2
    assert started == [1, 2, 3, 4]


def test_retry_failed_builds_fresh_batch_of_failed_items_only() -> None:
    attempts: dict[str, int] = {}

    async def process(item: str) -> str:
        attempts[item] = attempts.get(item, 0) + 1
        if item == "b" and attempts[item] == 1:
            raise ItemOperationError("flaky")
        return item

    first = BatchOrchestrator(["a", "b", "c"], process, concurrency=3)
    asyncio.run(first.run())

    retry = first.retry_failed()
    assert [status.key for status in retry.statuses] == ["b"]
    assert [status.status for status in retry.statuses] == ["pending"]

    report = asyncio.run(retry.run())
    assert report.stats.completed == 1
    assert attempts == {"a": 1, "b": 2, "c": 1}


def test_run_twice_is_rejected() -> None:
    async def process(item: int) -> int:
        return item

    orchestrator = BatchOrchestrator([1], process)
    asyncio.run(orchestrator.run())
    with pytest.raises(RuntimeError):
        asyncio.run(orchestrator.run())


def test_empty_batch_finishes_immediately() -> None:
    async def process(item: int) -> int:
        return item

    orchestrator = BatchOrchestrator([], process)
    report = asyncio.run(orchestrator.run())
    assert report.progress == 0.0
    assert report.stats.total == 0
    assert orchestrator.is_done


@pytest.mark.parametrize("concurrency", [0, -1, 1.5])
def test_invalid_concurrency_is_rejected(concurrency) -> None:
    async def process(item: int) -> int:
        return item

    with pytest.raises(ValidationError):
        BatchOrchestrator([1], process, concurrency=concurrency)


class FakeClient:
    def __init__(self) -> None:
        self.built: list[tuple[int, int | None]] = []
        self.uploaded: list[str] = []

    async def build_profile(self, candidate_id: int, *, job_id: int | None = None) -> dict:
        if candidate_id == 404:
            raise ItemOperationError("404: candidate 404 not found", status_code=404)
        self.built.append((candidate_id, job_id))
        return {"candidateId": candidate_id, "version": 1}

    async def upload_resume(self, path: Path) -> dict:
        self.uploaded.append(path.name)
        return {"candidate": {"name": path.stem}}


def test_batch_build_profiles_uses_candidate_labels() -> None:
    client = FakeClient()
    orchestrator = batch_build_profiles(client, [1, 404, 2], job_id=9, labels={1: "Ada"})

    report = asyncio.run(orchestrator.run())

    assert sorted(client.built) == [(1, 9), (2, 9)]
    assert [status.label for status in report.statuses] == ["Ada", "candidate 404", "candidate 2"]
    assert report.statuses[1].error == "404: candidate 404 not found"


def test_bulk_upload_labels_by_file_name(tmp_path: Path) -> None:
    client = FakeClient()
    paths = [tmp_path / "ada.txt", tmp_path / "grace.pdf"]

    report = asyncio.run(bulk_upload_resumes(client, paths, concurrency=5).run())

    assert [status.label for status in report.statuses] == ["ada.txt", "grace.pdf"]
    assert sorted(client.uploaded) == ["ada.txt", "grace.pdf"]
    assert report.max_in_flight <= 2
