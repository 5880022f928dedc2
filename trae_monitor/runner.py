"""A single background asyncio loop shared by every controller call."""

import asyncio
import concurrent.futures
import logging
import threading

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_S = 10


class AsyncRunner:
    def __init__(self):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="trae-monitor-loop", daemon=True)
        self._thread.start()

    def _run_loop(self):
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run(self, coro, timeout: float | None = None):
        """Run a coroutine on the shared loop and block until it completes."""
        if self._loop.is_closed():
            coro.close()
            raise RuntimeError("runner is stopped")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    async def _cancel_pending(self):
        tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        # finally blocks (browser context cleanup) run before the loop stops
        await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)

    def stop(self, timeout: float = SHUTDOWN_TIMEOUT_S):
        """Cancel whatever is still running on the loop, then stop and close it."""
        if self._loop.is_closed():
            return
        if self._thread.is_alive():
            future = asyncio.run_coroutine_threadsafe(self._cancel_pending(), self._loop)
            try:
                cancelled = future.result(timeout)
            except concurrent.futures.TimeoutError:
                logger.warning("pending tasks did not finish within %ss", timeout)
            else:
                if cancelled:
                    logger.debug("cancelled %d pending task(s)", cancelled)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        if not self._loop.is_running():
            self._loop.close()
        logger.debug("async runner stopped")
