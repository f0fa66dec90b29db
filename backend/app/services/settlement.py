# services/settlement.py
"""
Simulated payment maturation.

Without a live provider, every new invoice gets one deferred "mark paid"
call. Each invoice owns at most one pending task; scheduling again replaces
it, and shutdown cancels whatever is still waiting.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict

logger = logging.getLogger("campusflow.settlement")

MarkPaid = Callable[[str], Awaitable[object]]


class SettlementScheduler:
    def __init__(self, delay_seconds: float, enabled: bool = True):
        self.delay_seconds = delay_seconds
        self.enabled = enabled
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, invoice_id: str, mark_paid: MarkPaid) -> None:
        if not self.enabled:
            return
        self.cancel(invoice_id)
        task = asyncio.create_task(self._mature(invoice_id, mark_paid))
        self._tasks[invoice_id] = task
        logger.debug(f"⏳ Simulated settlement for {invoice_id} in {self.delay_seconds}s")

    async def _mature(self, invoice_id: str, mark_paid: MarkPaid) -> None:
        try:
            await asyncio.sleep(self.delay_seconds)
            await mark_paid(invoice_id)
        except asyncio.CancelledError:
            logger.debug(f"Simulated settlement cancelled for {invoice_id}")
            raise
        except Exception as e:
            logger.error(f"Simulated settlement failed for {invoice_id}: {e}", exc_info=True)
        finally:
            if self._tasks.get(invoice_id) is asyncio.current_task():
                self._tasks.pop(invoice_id, None)

    def cancel(self, invoice_id: str) -> bool:
        task = self._tasks.pop(invoice_id, None)
        if task and not task.done():
            task.cancel()
            return True
        return False

    def pending(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"🧹 Cancelled {len(tasks)} pending simulated settlements")
