"""
Room Chat AI - Generation Worker Process

Runs one or more Generation Workers against the shared Redis queue until
SIGINT/SIGTERM, then closes Redis and the database pool.

    python -m roomchat.worker
"""

import asyncio
import logging
import signal
from typing import List, Optional

from roomchat.config.settings import Settings, get_settings
from roomchat.infrastructure.ai.gemini_service import get_gemini_service
from roomchat.infrastructure.cache.redis_client import close_redis, get_redis
from roomchat.infrastructure.db.database import close_db, init_db
from roomchat.infrastructure.exceptions import StoreUnavailableError
from roomchat.infrastructure.queue.job_queue import JobQueue
from roomchat.services.generation_worker import GenerationWorker


logger = logging.getLogger(__name__)


def build_workers(count: int, settings: Optional[Settings] = None) -> List[GenerationWorker]:
    """Create ``count`` workers sharing one queue and one Gemini client."""
    settings = settings or get_settings()
    queue = JobQueue(
        get_redis(),
        settings.gemini_queue_name,
        poll_timeout_seconds=settings.queue_poll_timeout_seconds,
    )
    gemini = get_gemini_service()
    return [
        GenerationWorker(
            queue,
            gemini,
            max_output_tokens=settings.ai_max_output_tokens,
            retry_backoff_seconds=settings.queue_retry_backoff_seconds,
            name=f"gemini-worker-{index + 1}",
        )
        for index in range(count)
    ]


async def run_workers(count: Optional[int] = None) -> None:
    """Run workers until a shutdown signal, then release connections."""
    settings = get_settings()
    workers = build_workers(count or settings.worker_concurrency, settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, workers, sig)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            logger.warning(f"Cannot install handler for {sig.name}")

    try:
        if await _connect_database(workers, settings.queue_retry_backoff_seconds):
            logger.info(
                f"Starting {len(workers)} generation worker(s) on '{settings.gemini_queue_name}'"
            )
            await asyncio.gather(*(worker.run() for worker in workers))
    finally:
        await close_redis()
        await close_db()
        logger.info("Worker connections closed")


async def _connect_database(workers: List[GenerationWorker], backoff_seconds: float) -> bool:
    """Retry the startup database check until it succeeds or a stop is requested."""
    while not any(worker.stopping for worker in workers):
        try:
            await init_db()
            return True
        except StoreUnavailableError as e:
            logger.error(f"Database unavailable at startup, retrying: {e}")
            await asyncio.sleep(backoff_seconds)
    return False


def _request_stop(workers: List[GenerationWorker], sig: signal.Signals) -> None:
    logger.info(f"Received {sig.name}; stopping after in-flight jobs")
    for worker in workers:
        worker.stop()


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    asyncio.run(run_workers())


if __name__ == "__main__":
    main()
