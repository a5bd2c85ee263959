"""
Expiry reaper — periodically purges file groups past their TTL, plus blobs
and temp files no group references (left by interrupted uploads).
Runs as a background task inside the app, or once via cron:

    python -m codedrop.workers.cleanup_worker
"""

import asyncio
import logging
from datetime import timedelta

from codedrop.services.registry import FileRegistry

logger = logging.getLogger(__name__)


class ExpiryReaper:
    def __init__(
        self,
        registry: FileRegistry,
        interval: float = 600,
        grace: float = 30,
        orphan_max_age: float | None = None,
    ):
        self.registry = registry
        self.orphan_max_age = orphan_max_age
        self.interval = interval
        self.grace = timedelta(seconds=grace)
        self._task: asyncio.Task | None = None

    async def sweep(self) -> int:
        """Purge groups that expired more than ``grace`` ago. Returns count removed."""
        cutoff = self.registry.clock() - self.grace
        removed = 0

        for group in await self.registry.list_expired(cutoff):
            try:
                if await self.registry.purge(group):
                    removed += 1
            except Exception:
                logger.warning("Failed to purge group %s", group.code, exc_info=True)

        if self.orphan_max_age is not None:
            try:
                await self.sweep_orphans()
            except Exception:
                logger.warning("Orphan blob sweep failed", exc_info=True)

        if removed:
            logger.info("Reaper removed %d expired group(s)", removed)
        return removed

    async def sweep_orphans(self) -> int:
        """Delete unreferenced files older than ``orphan_max_age``. Returns count removed."""
        storage = self.registry.storage
        # Listed before the references so a blob registered meanwhile is kept
        stale = storage.list_stale(self.orphan_max_age)
        if not stale:
            return 0
        referenced = await self.registry.storage_names()
        removed = 0

        for name in stale:
            if name in referenced:
                continue
            try:
                await storage.delete(name)
                removed += 1
                logger.info("Removed orphaned blob %s", name)
            except Exception:
                logger.warning("Failed to remove orphaned blob %s", name, exc_info=True)

        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Expiry sweep failed")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="expiry-reaper")
            logger.info("Expiry reaper started (every %ss)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


async def _cleanup_once(settings) -> int:
    from codedrop.dependencies import build_registry
    from codedrop.utils.storage import LocalStorage

    registry, engine = await build_registry(settings, LocalStorage(settings.blob_dir))
    try:
        reaper = ExpiryReaper(
            registry,
            grace=settings.REAPER_GRACE_SECONDS,
            orphan_max_age=settings.FILE_TTL_SECONDS + settings.REAPER_GRACE_SECONDS,
        )
        return await reaper.sweep()
    finally:
        await registry.close()
        await engine.dispose()


def run_cleanup(settings=None) -> int:
    """Synchronous entry point for a single sweep."""
    if settings is None:
        from codedrop.config import settings

    logger.info("Starting cleanup...")
    removed = asyncio.run(_cleanup_once(settings))
    logger.info("Cleanup complete: %d expired group(s) removed", removed)
    return removed


def main() -> None:
    from codedrop.config import settings
    from codedrop.utils.log_config import setup_logging

    setup_logging(settings.LOG_LEVEL)
    run_cleanup(settings)


if __name__ == "__main__":
    main()
