"""Redis list queue for KPI recompute jobs.

Producers LPUSH, the worker BRPOP's, so jobs are served FIFO. A job only
names the org and the caller who requested it; the worker re-checks that
caller's membership before touching any data.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from redis import Redis

from insight_api.config.env import get_kpi_queue_name

logger = logging.getLogger(__name__)


class KpiJob(BaseModel):
    """Queued KPI recompute request."""

    org_id: int = Field(..., gt=0)
    caller_id: int = Field(..., gt=0)
    day: date
    enqueued_at: Optional[datetime] = None
    request_id: Optional[str] = None
    schema_version: str = "1"


class KpiJobQueue:
    """KPI job queue on a Redis list."""

    def __init__(self, redis: Redis, queue_name: Optional[str] = None):
        self.redis = redis
        self.queue_name = queue_name or get_kpi_queue_name()

    def enqueue(self, org_id: int, caller_id: int, day: date, request_id: Optional[str] = None) -> KpiJob:
        """Push a recompute job for (org, day) requested by caller."""
        job = KpiJob(
            org_id=org_id,
            caller_id=caller_id,
            day=day,
            enqueued_at=datetime.now(timezone.utc),
            request_id=request_id or None,
        )
        self.redis.lpush(self.queue_name, job.model_dump_json())
        logger.info(
            "kpi.job.enqueued",
            extra={"org_id": org_id, "caller_id": caller_id, "day": day.isoformat()},
        )
        return job

    def dequeue(self, timeout: int = 5) -> Optional[KpiJob]:
        """Block up to ``timeout`` seconds for the next job.

        Returns:
            The job, or None on timeout. Malformed payloads are logged and
            discarded (None is returned for them too).
        """
        item = self.redis.brpop([self.queue_name], timeout=timeout)
        if item is None:
            return None

        _, payload = item
        try:
            return KpiJob.model_validate(json.loads(payload))
        except (ValueError, ValidationError):
            logger.error(
                "kpi.job.malformed",
                extra={"queue": self.queue_name, "payload_size": len(payload or "")},
            )
            return None

    def size(self) -> int:
        return int(self.redis.llen(self.queue_name))
