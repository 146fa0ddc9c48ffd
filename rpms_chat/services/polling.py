import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Handle cancelable de un refresco periódico. La primera ejecución ocurre
    después del primer intervalo; quien lo crea ya hizo la carga inicial.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], Awaitable[None]]):
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"poll:{self.name}")
        logger.debug("poll %s iniciado (cada %ss)", self.name, self.interval)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._callback()
            except Exception:
                # Un tick fallido no debe matar el polling
                logger.exception("poll %s: error en el refresco", self.name)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            logger.debug("poll %s cancelado", self.name)
        self._task = None

    async def stop(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
