"""Export retention: deletes expired export rows and their files.

Meant to be run on a schedule (cron, k8s CronJob)::

    python -m foundry.jobs.export_cleanup
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from foundry.core.config import Settings, get_settings
from foundry.core.database import create_engine
from foundry.core.logging_config import configure_logging
from foundry.core.models import Export

logger = logging.getLogger(__name__)


async def purge_expired_exports(session: AsyncSession, now: datetime | None = None) -> dict:
    """Delete expired exports and return a summary.

    Rows are deleted first; a file that cannot be removed is logged and
    left behind rather than keeping its row alive.

    Args:
        session: Database session.
        now: Override for current time (useful for testing). Defaults to UTC now.

    Returns:
        Dict with keys: rows_deleted, files_deleted, run_at, duration_ms
    """
    if now is None:
        now = datetime.now(UTC)

    start = time.monotonic()

    result = await session.execute(
        delete(Export)
        .where(Export.expires_at <= now)
        .returning(Export.id, Export.file_path)
        .execution_options(synchronize_session=False)
    )
    expired = result.all()
    rows_deleted = len(expired)

    files_deleted = 0
    for export_id, file_path in expired:
        try:
            Path(file_path).unlink()
            files_deleted += 1
        except FileNotFoundError:
            logger.debug("Export %s file already gone", export_id)
        except OSError as e:
            logger.warning("Could not delete file for expired export %s: %s", export_id, e)

    if rows_deleted > 0:
        await session.flush()

    elapsed_ms = (time.monotonic() - start) * 1000

    summary = {
        "rows_deleted": rows_deleted,
        "files_deleted": files_deleted,
        "run_at": now.isoformat(),
        "duration_ms": round(elapsed_ms, 2),
    }

    if rows_deleted > 0:
        logger.info(
            "Export cleanup: deleted %d expired export(s), %d file(s) in %.1fms",
            rows_deleted,
            files_deleted,
            elapsed_ms,
        )
    else:
        logger.debug("Export cleanup: no expired exports found")

    return summary


async def run_export_cleanup(settings: Settings | None = None) -> dict:
    """Open a database connection and purge once."""
    settings = settings or get_settings()
    engine, session_factory = create_engine(settings)
    try:
        async with session_factory() as session:
            summary = await purge_expired_exports(session)
            await session.commit()
    finally:
        await engine.dispose()
    return summary


if __name__ == "__main__":
    configure_logging(get_settings())
    asyncio.run(run_export_cleanup())
