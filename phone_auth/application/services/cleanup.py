import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..ports.otp_repo import OtpRepository
from ...utils import utcnow

logger = logging.getLogger(__name__)


class OtpCleanupTask:
    """Background sweep purging expired OTP records on a fixed interval.

    Owned by the application lifespan: ``start()`` schedules the loop on the
    running event loop and ``stop()`` cancels it. The database work runs in a
    worker thread so request handling is never blocked, and a failed sweep
    only costs that one run.
    """

    def __init__(self, otp_repo: OtpRepository, interval_seconds: float = 600,
                 stale_after_minutes: Optional[int] = 60,
                 clock: Callable[[], datetime] = utcnow):
        self.otp_repo = otp_repo
        self.interval_seconds = interval_seconds
        self.stale_after_minutes = stale_after_minutes
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> int:
        now = self.clock()
        created_before = None
        if self.stale_after_minutes:
            created_before = now - timedelta(minutes=self.stale_after_minutes)
        deleted = self.otp_repo.delete_expired(now, created_before=created_before)
        logger.info("OTP cleanup removed %d expired codes", deleted)
        return deleted

    async def run_once(self) -> Optional[int]:
        try:
            return await asyncio.to_thread(self.sweep)
        except Exception:
            logger.exception("OTP cleanup sweep failed")
            return None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="otp-cleanup")
        logger.info("OTP cleanup scheduled every %ss", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("OTP cleanup stopped")
