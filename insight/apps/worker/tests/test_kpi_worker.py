"""KPI recompute worker loop."""

import threading
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import select

from insight_api.db.models import KpiSnapshot, Membership
from insight_api.kpi.queue import KpiJob
from insight_api.tenancy.errors import StorageFailure
from insight_worker.loops.kpi_loop import (
    OUTCOME_DONE,
    OUTCOME_FAILED,
    OUTCOME_UNAUTHORIZED,
    KpiWorkerLoop,
    process_job,
)

JAN_1 = date(2024, 1, 1)


def _snapshots(session_factory):
    db = session_factory()
    try:
        rows = db.execute(select(KpiSnapshot).order_by(KpiSnapshot.id)).scalars().all()
        return {row.project_id: row.value for row in rows}
    finally:
        db.close()


def test_process_job_writes_daily_counts(session_factory, acme):
    job = KpiJob(org_id=1, caller_id=7, day=JAN_1)

    assert process_job(job, session_factory) == OUTCOME_DONE

    values = _snapshots(session_factory)
    assert values[10] == Decimal("2")
    assert values[11] == Decimal("1")
    assert values[None] == Decimal("3")


def test_rerun_replaces_values(session_factory, acme):
    job = KpiJob(org_id=1, caller_id=7, day=JAN_1)
    process_job(job, session_factory)
    process_job(job, session_factory)

    db = session_factory()
    try:
        assert len(db.execute(select(KpiSnapshot)).scalars().all()) == 3
    finally:
        db.close()


def test_caller_removed_after_enqueue_is_dropped(session_factory, acme):
    job = KpiJob(org_id=1, caller_id=7, day=JAN_1)

    db = session_factory()
    db.query(Membership).filter_by(user_id=7, organization_id=1).delete()
    db.commit()
    db.close()

    assert process_job(job, session_factory) == OUTCOME_UNAUTHORIZED
    assert _snapshots(session_factory) == {}


def test_unknown_org_is_dropped(session_factory, acme):
    job = KpiJob(org_id=99, caller_id=7, day=JAN_1)
    assert process_job(job, session_factory) == OUTCOME_UNAUTHORIZED


def test_storage_failure_fails_job(session_factory, acme):
    job = KpiJob(org_id=1, caller_id=7, day=JAN_1)
    with patch(
        "insight_worker.loops.kpi_loop.recompute_daily_event_counts",
        side_effect=StorageFailure("KPI upsert failed"),
    ):
        assert process_job(job, session_factory) == OUTCOME_FAILED


def test_run_once_idle_returns_none(session_factory):
    queue = MagicMock()
    queue.dequeue.return_value = None

    loop = KpiWorkerLoop(queue, session_factory, poll_timeout=1)

    assert loop.run_once() is None
    queue.dequeue.assert_called_once_with(timeout=1)


def test_run_once_processes_dequeued_job(session_factory, acme):
    queue = MagicMock()
    queue.dequeue.return_value = KpiJob(org_id=1, caller_id=7, day=JAN_1)

    assert KpiWorkerLoop(queue, session_factory).run_once() == OUTCOME_DONE


def test_run_forever_stops_on_shutdown(session_factory):
    shutdown = threading.Event()
    queue = MagicMock()
    queue.queue_name = "test:kpi"

    def dequeue(timeout):
        shutdown.set()
        return None

    queue.dequeue.side_effect = dequeue

    KpiWorkerLoop(queue, session_factory, shutdown_event=shutdown).run_forever()

    assert queue.dequeue.call_count == 1


def test_unexpected_rollup_error_fails_job(session_factory, acme):
    job = KpiJob(org_id=1, caller_id=7, day=JAN_1)
    with patch(
        "insight_worker.loops.kpi_loop.recompute_daily_event_counts",
        side_effect=RuntimeError("boom"),
    ):
        assert process_job(job, session_factory) == OUTCOME_FAILED


def test_run_forever_survives_queue_errors(session_factory, acme):
    shutdown = threading.Event()
    queue = MagicMock()
    queue.queue_name = "test:kpi"
    outcomes = []

    def dequeue(timeout):
        if queue.dequeue.call_count == 1:
            raise RedisConnectionError("connection reset")
        shutdown.set()
        return KpiJob(org_id=1, caller_id=7, day=JAN_1)

    queue.dequeue.side_effect = dequeue
    loop = KpiWorkerLoop(queue, session_factory, shutdown_event=shutdown, error_backoff=0)
    original_run_once = loop.run_once

    def run_once():
        outcome = original_run_once()
        outcomes.append(outcome)
        return outcome

    loop.run_once = run_once
    loop.run_forever()

    assert queue.dequeue.call_count == 2
    assert outcomes == [OUTCOME_DONE]
    assert _snapshots(session_factory)[None] == Decimal("3")
