from __future__ import annotations

import logging

from rq import Queue, Worker

from app.core.config import settings
from app.core.queue import _get_redis_connection

logger = logging.getLogger(__name__)


def main() -> None:
    redis_connection = _get_redis_connection()
    queue = Queue(settings.RQ_QUEUE_NAME, connection=redis_connection)
    worker = Worker([queue], connection=redis_connection)
    logger.info("Starting worker on queue %s", settings.RQ_QUEUE_NAME)
    worker.work()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
