"""Insight Worker main entry point."""

import logging
import os
import signal
import threading

from insight_api.config import env
from insight_api.db.engine import build_engine, build_sessionmaker
from insight_api.db.redis_client import RedisClient
from insight_api.kpi.queue import KpiJobQueue
from insight_api.utils import configure_json_logging
from insight_worker.loops.kpi_loop import KpiWorkerLoop

logger = logging.getLogger(__name__)

# Global shutdown event for graceful termination
_shutdown_event = threading.Event()


def _signal_handler(signum, frame):
    """Handle shutdown signals (SIGTERM, SIGINT) gracefully."""
    sig_name = signal.Signals(signum).name
    logger.info(f"Received {sig_name} signal, initiating graceful shutdown...")
    _shutdown_event.set()


def main() -> None:
    """Main entry point for worker."""
    configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    # Fail-fast in production happens inside get_database_url
    engine = build_engine(env.get_database_url())
    SessionLocal = build_sessionmaker(engine)

    queue = KpiJobQueue(RedisClient.get_client())
    worker = KpiWorkerLoop(
        queue=queue,
        session_factory=SessionLocal,
        shutdown_event=_shutdown_event,
        poll_timeout=int(os.getenv("INSIGHT_WORKER_POLL_SECONDS", "5")),
        error_backoff=float(os.getenv("INSIGHT_WORKER_ERROR_BACKOFF_SECONDS", "1")),
    )

    logger.info(f"Starting Insight Worker (environment: {env.get_insight_env()})")
    try:
        worker.run_forever()
    finally:
        RedisClient.reset()
        engine.dispose()
        logger.info("Worker shutdown complete")


if __name__ == "__main__":
    main()
