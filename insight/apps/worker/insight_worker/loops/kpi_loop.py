"""KPI recompute loop.

Each job names (org_id, caller_id, day). The loop opens a fresh session per
job and rebuilds the tenant gateway, so the caller's membership is checked
again at execution time. A caller removed from the org after enqueueing
gets the job dropped.

No automatic retry: a failed job is logged and dropped.
"""

import logging
import threading
from typing import Callable

from sqlalchemy.orm import Session

from insight_api.context import org_id_var, request_id_var, user_id_var
from insight_api.kpi.queue import KpiJob, KpiJobQueue
from insight_api.kpi.rollup import recompute_daily_event_counts
from insight_api.tenancy.errors import AuthzError, InvalidInput, ProjectNotFound, StorageFailure
from insight_api.tenancy.gateway import TenantGateway

logger = logging.getLogger(__name__)

OUTCOME_DONE = "done"
OUTCOME_UNAUTHORIZED = "dropped_unauthorized"
OUTCOME_FAILED = "failed"


def process_job(job: KpiJob, session_factory: Callable[[], Session]) -> str:
    """Run one recompute job.

    Returns:
        OUTCOME_DONE, OUTCOME_UNAUTHORIZED or OUTCOME_FAILED
    """
    request_id_var.set(job.request_id or "")
    org_id_var.set(str(job.org_id))
    user_id_var.set(str(job.caller_id))

    db = session_factory()
    try:
        gateway = TenantGateway.create(db, job.org_id, job.caller_id)
        snapshots = recompute_daily_event_counts(gateway, job.day)
    except AuthzError as e:
        logger.warning(
            "kpi.job.dropped_unauthorized",
            extra={"org_id": job.org_id, "caller_id": job.caller_id, "reason": type(e).__name__},
        )
        return OUTCOME_UNAUTHORIZED
    except (StorageFailure, InvalidInput, ProjectNotFound) as e:
        logger.error(
            "kpi.job.failed",
            extra={"org_id": job.org_id, "day": job.day.isoformat(), "reason": type(e).__name__},
        )
        return OUTCOME_FAILED
    except Exception:
        logger.error(
            "kpi.job.failed",
            extra={"org_id": job.org_id, "day": job.day.isoformat(), "reason": "unexpected"},
            exc_info=True,
        )
        return OUTCOME_FAILED
    finally:
        db.close()
        request_id_var.set("")
        org_id_var.set("")
        user_id_var.set("")

    logger.info(
        "kpi.job.completed",
        extra={"org_id": job.org_id, "day": job.day.isoformat(), "snapshots": len(snapshots)},
    )
    return OUTCOME_DONE


class KpiWorkerLoop:
    """Blocking consume loop over the KPI job queue."""

    def __init__(
        self,
        queue: KpiJobQueue,
        session_factory: Callable[[], Session],
        shutdown_event: threading.Event | None = None,
        poll_timeout: int = 5,
        error_backoff: float = 1.0,
    ):
        self.queue = queue
        self.session_factory = session_factory
        self.shutdown_event = shutdown_event or threading.Event()
        self.poll_timeout = poll_timeout
        self.error_backoff = error_backoff

    def run_once(self) -> str | None:
        """Process at most one job. Returns its outcome, or None if idle."""
        job = self.queue.dequeue(timeout=self.poll_timeout)
        if job is None:
            return None
        return process_job(job, self.session_factory)

    def run_forever(self) -> None:
        logger.info("kpi.worker.started", extra={"queue": self.queue.queue_name})
        iteration = 0
        while not self.shutdown_event.is_set():
            iteration += 1
            try:
                self.run_once()
            except Exception:
                # Queue outages are retried after a short, interruptible pause
                logger.error("kpi.worker.iteration_failed", extra={"iteration": iteration}, exc_info=True)
                self.shutdown_event.wait(self.error_backoff)
        logger.info("kpi.worker.stopped")
