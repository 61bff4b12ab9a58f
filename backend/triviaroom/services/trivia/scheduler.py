import logging
import threading
from typing import Any, Callable, Tuple

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle for a delayed callback. Cancelling before it fires suppresses it."""

    def __init__(self, delay: float, callback: Callable, args: Tuple[Any, ...] = (), label: str = ''):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.label = label
        self._cancelled = threading.Event()
        self.fired = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def run(self) -> None:
        if self.cancelled:
            logger.info(f"[timer-skip] {self.label} cancelled")
            return
        self.fired = True
        logger.info(f"[timer-fire] {self.label}")
        self.callback(*self.args)


class SocketIOScheduler:
    """Runs each task as a Socket.IO background task after ``delay`` seconds.

    Works under any async mode Flask-SocketIO picked (threading, eventlet,
    gevent) since it only uses ``start_background_task`` and ``sleep``.
    """

    def __init__(self, socketio):
        self.socketio = socketio

    def schedule(self, delay: float, callback: Callable, *args, label: str = '') -> ScheduledTask:
        task = ScheduledTask(delay, callback, args, label)
        logger.info(f"[timer-set] {label} delay={delay}s")
        self.socketio.start_background_task(self._worker, task)
        return task

    def _worker(self, task: ScheduledTask) -> None:
        self.socketio.sleep(task.delay)
        try:
            task.run()
        except Exception:
            # A background task has no caller to report to
            logger.exception(f"[timer-error] {task.label}")
