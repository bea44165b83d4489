from typing import Any, Callable


class ScheduledCall:
    """Handle for a delayed callback; cancel() prevents it from firing."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class BackgroundScheduler:
    """call_later() on top of a Socket.IO style task runner.

    ``runner`` is anything exposing ``start_background_task(fn, *args)`` and
    ``sleep(seconds)``: the server-side ``flask_socketio.SocketIO`` instance
    or a ``socketio.Client``. Both pick the right primitive for the async
    mode in use (threads, eventlet, gevent).
    """

    def __init__(self, runner):
        self._runner = runner

    def call_later(self, delay: float, callback: Callable[..., Any], *args) -> ScheduledCall:
        handle = ScheduledCall()

        def _worker():
            if delay > 0:
                self._runner.sleep(delay)
            if handle.cancelled:
                return
            callback(handle, *args)

        self._runner.start_background_task(_worker)
        return handle
