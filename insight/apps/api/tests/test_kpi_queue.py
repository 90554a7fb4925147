"""KPI job queue on a Redis list."""

import json
from datetime import date
from unittest.mock import MagicMock

from insight_api.kpi.queue import KpiJob, KpiJobQueue


def test_enqueue_pushes_json_job():
    redis = MagicMock()
    queue = KpiJobQueue(redis, queue_name="test:kpi")

    queue.enqueue(1, 7, date(2024, 1, 1), request_id="req-1")

    name, payload = redis.lpush.call_args.args
    assert name == "test:kpi"
    job = json.loads(payload)
    assert (job["org_id"], job["caller_id"], job["day"], job["request_id"]) == (1, 7, "2024-01-01", "req-1")


def test_dequeue_parses_job():
    redis = MagicMock()
    redis.brpop.return_value = ("test:kpi", json.dumps({"org_id": 1, "caller_id": 7, "day": "2024-01-01"}))

    job = KpiJobQueue(redis, queue_name="test:kpi").dequeue(timeout=1)

    assert job == KpiJob(org_id=1, caller_id=7, day=date(2024, 1, 1))
    redis.brpop.assert_called_once_with(["test:kpi"], timeout=1)


def test_dequeue_timeout_returns_none():
    redis = MagicMock()
    redis.brpop.return_value = None
    assert KpiJobQueue(redis, queue_name="q").dequeue(timeout=1) is None


def test_malformed_payload_is_discarded():
    redis = MagicMock()
    for payload in ("not json", json.dumps({"org_id": 0, "caller_id": 7, "day": "2024-01-01"})):
        redis.brpop.return_value = ("q", payload)
        assert KpiJobQueue(redis, queue_name="q").dequeue(timeout=1) is None


def test_default_queue_name(monkeypatch):
    monkeypatch.delenv("INSIGHT_KPI_QUEUE", raising=False)
    assert KpiJobQueue(MagicMock()).queue_name == "insight:kpi:jobs"
