"""
Order Watcher — periodic auto-refresh of orders someone is actively tracking.

The tracking screen used to poll every 30 seconds while it was open. Here each
watched order gets its own asyncio task that sleeps `interval_seconds`, calls
the injected refresh function, and exits on its own once the order is no
longer active (delivered, cancelled or an unrecognised status) or stops
being visible to its owner.

Tick failures other than NotFoundError (e.g. StorageError) are logged and
counted; the status simply stays as it was until the next tick.

This runs inside the FastAPI event loop; stop_all() is called from the app
lifespan on shutdown.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from domain.enums import ACTIVE_STATUSES
from domain.errors import NotFoundError
from services.tracking_service import RefreshResult

logger = logging.getLogger(__name__)

RefreshFn = Callable[[Any, Any], Awaitable[RefreshResult]]


@dataclass
class _Watch:
    order_id: Any
    user_id: Any
    task: asyncio.Task
    ticks: int = 0
    last_status: Optional[str] = None


class OrderWatcher:
    """One polling task per watched order, keyed by str(order_id)."""

    def __init__(self, refresh: RefreshFn, interval_seconds: float = 30):
        self._refresh = refresh
        self.interval_seconds = interval_seconds
        self._watches: dict[str, _Watch] = {}
        self._pending: set[asyncio.Task] = set()  # out-of-band ticks from notify_external_change
        self.errors_count = 0

    # ── Public API ──────────────────────────────────────────────────

    def watch(self, order_id: Any, user_id: Any, status: Optional[str] = None) -> bool:
        """
        Start auto-refreshing an order. Returns False when `status` is terminal
        or not one the simulator advances.

        Watching an order that is already watched restarts its timer.
        """
        if status is not None and status not in ACTIVE_STATUSES:
            return False
        self.unwatch(order_id)

        key = str(order_id)
        task = asyncio.create_task(self._watch_loop(key), name=f"watch-order-{key}")
        self._watches[key] = _Watch(order_id=order_id, user_id=user_id, task=task, last_status=status)
        logger.info(f"Watching order {order_id} every {self.interval_seconds}s")
        return True

    def unwatch(self, order_id: Any) -> bool:
        watch = self._watches.pop(str(order_id), None)
        if watch is None:
            return False
        if not watch.task.done() and watch.task is not _current_task():
            watch.task.cancel()
        return True

    def is_watching(self, order_id: Any) -> bool:
        return str(order_id) in self._watches

    async def stop_all(self) -> None:
        """Cancel every watch task and pending out-of-band refresh, and wait for them to finish."""
        watches = list(self._watches.values())
        self._watches.clear()
        tasks = [w.task for w in watches] + list(self._pending)
        self._pending.clear()
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if watches:
            logger.info(f"Stopped {len(watches)} order watch(es)")

    def notify_external_change(self, order_ids: Iterable[Any]) -> int:
        """
        Refresh watched orders right away after an out-of-band store write.

        Intended as an Order Store change handler. Returns how many refreshes
        were scheduled.
        """
        scheduled = 0
        for order_id in {str(i) for i in order_ids}:
            if order_id in self._watches:
                task = asyncio.create_task(self._tick(order_id), name=f"refresh-order-{order_id}")
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
                scheduled += 1
        return scheduled

    def get_status(self) -> dict:
        """Watcher status for the /tracking/status endpoint."""
        return {
            "watching": len(self._watches),
            "orders": [
                {
                    "orderId": w.order_id,
                    "ticks": w.ticks,
                    "lastStatus": w.last_status,
                }
                for w in self._watches.values()
            ],
            "intervalSeconds": self.interval_seconds,
            "errorsCount": self.errors_count,
        }

    # ── Internals ───────────────────────────────────────────────────

    async def _tick(self, key: str) -> bool:
        """Run one refresh. Returns False when the watch should end."""
        watch = self._watches.get(key)
        if watch is None:
            return False
        watch.ticks += 1
        try:
            result = await self._refresh(watch.order_id, watch.user_id)
        except NotFoundError:
            logger.warning(f"Order {watch.order_id} no longer visible to its owner, stop watching")
            self._drop(key, watch)
            return False
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.errors_count += 1
            logger.error(f"Auto-refresh of order {watch.order_id} failed: {e}")
            return True

        watch.last_status = result.order.status
        if result.order.status not in ACTIVE_STATUSES:
            logger.info(f"Order {watch.order_id} is {result.order.status}, stop watching")
            self._drop(key, watch)
            return False
        return True

    def _drop(self, key: str, watch: _Watch) -> None:
        if self._watches.get(key) is watch:
            del self._watches[key]

    async def _watch_loop(self, key: str) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                if not await self._tick(key):
                    break
        except asyncio.CancelledError:
            logger.debug(f"Watch for order {key} cancelled")
            raise


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


# Process-wide watcher, created by the app lifespan
_watcher: OrderWatcher | None = None


def get_order_watcher() -> OrderWatcher | None:
    return _watcher


def set_order_watcher(watcher: OrderWatcher | None) -> None:
    global _watcher
    _watcher = watcher
