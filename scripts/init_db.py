"""Create the note and revision tables.

Run as ``python -m scripts.init_db`` once ``DATABASE_URL`` points at the target
database. The database may still be starting (for example inside docker
compose), so connection failures are retried before giving up.
"""

from __future__ import annotations

import time
from typing import Callable

from sqlalchemy.exc import OperationalError

import database
import models  # noqa: F401
from core.logging import get_logger

logger = get_logger(__name__)


def _retry(operation: Callable[[], None], *, retries: int = 7, delay: float = 3.0) -> None:
    for attempt in range(1, retries + 1):
        try:
            operation()
            return
        except OperationalError as exc:
            if attempt == retries:
                raise
            logger.warning(
                "Database not ready yet (attempt %d/%d). Retrying in %.1f seconds: %s",
                attempt,
                retries,
                delay,
                exc,
            )
            time.sleep(delay)


def init_db(*, retries: int = 7, delay: float = 3.0) -> None:
    logger.info("Ensuring note and revision tables exist.")
    _retry(lambda: database.Base.metadata.create_all(bind=database.engine), retries=retries, delay=delay)
    logger.info("Tables ready: %s", ", ".join(sorted(database.Base.metadata.tables)))


if __name__ == "__main__":
    init_db()
