"""
mail/dispatch.py -- Fire-and-forget delivery of notification emails.

Pattern: each send becomes its own asyncio.Task owned by the dispatcher, not
by the request that triggered it. Cancelling or finishing the request does
not cancel the send, and a failed send never reaches the request's response.
The task's outcome is observed only by _on_done(), which logs it.

The dispatcher holds a strong reference to every in-flight task (asyncio
only keeps weak references) and drops it when the task completes. drain()
awaits whatever is still in flight -- the lifespan calls it before closing
the notifier, and tests call it to observe what was sent.
"""

from __future__ import annotations

import asyncio
import logging

from mail.notifier import Notifier

logger = logging.getLogger("gatekeeper.mail")


class MailDispatcher:
    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task] = set()
        self.sent = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, to_email: str, subject: str, html_body: str) -> asyncio.Task:
        """Schedule a send and return immediately.

        Must be called from inside a running event loop. The returned task is
        for inspection only; callers are not expected to await it.
        """
        task = asyncio.create_task(
            self._notifier.send(to_email, subject, html_body),
            name=f"mail:{subject}",
        )
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            self.failed += 1
            logger.warning("Email task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.failed += 1
            logger.error("Email task %s failed: %s", task.get_name(), exc, exc_info=exc)
            return
        if task.result() is False:
            self.failed += 1
            logger.error("Email task %s reported failure", task.get_name())
            return
        self.sent += 1

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight sends. Outstanding tasks are cancelled after timeout."""
        if not self._pending:
            return
        pending = list(self._pending)
        done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %d email task(s) still running at shutdown", len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
