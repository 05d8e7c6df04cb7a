"""
Two-stage cancellation under OS interrupt signals.

Overview
- CancellationToken: thread-safe, signal-once flag with callbacks; usable
  from threads (wait) and from coroutines (wait_async).
- CancellationController: owns a cooperative token and a timeout token for
  the duration of one run.

  RUNNING ──interrupt──▶ CANCEL_REQUESTED ──grace period──▶ TIMEOUT_EXPIRED
     │                         │
     └──────── exit ───────────┴──▶ COMPLETED

  The first interrupt (SIGINT, SIGTERM, SIGQUIT where available) cancels the
  cooperative token and arms the timeout countdown. Later interrupts change
  nothing: they neither shorten nor restart the countdown. When the countdown
  elapses the timeout token is cancelled and run() abandons the work with
  OperationCancelledError.

Scope
- Use the controller as a context manager inside the running event loop.
  Signal handlers are installed on entry (main thread only, through the
  loop's add_signal_handler where the platform has it) and the previous
  handlers are restored on exit, whatever the outcome.
- The countdown runs on a timer thread, never on the loop: a body that
  blocks its loop cannot hold it up. run() only abandons bodies that live on
  another loop (see filters.detach) or that accept cancellation.
"""
import asyncio
import enum
import signal
import threading

from .faults import OperationCancelledError


class State(enum.Enum):
    RUNNING = "running"
    CANCEL_REQUESTED = "cancel-requested"
    TIMEOUT_EXPIRED = "timeout-expired"
    COMPLETED = "completed"


class CancellationToken:
    """
    Signal-once cancellation flag.

    - cancelled: True once cancel() ran.
    - cancel(): set the flag and run the registered callbacks (once).
    - register(callback): run callback on cancellation (immediately when
      already cancelled); returns a function that unregisters it.
    - raise_if_cancelled(): raise OperationCancelledError when cancelled.
    - wait(timeout=None): block the calling thread; True when cancelled.
    - wait_async(): await cancellation from a coroutine.
    """

    def __init__(self):
        # reentrant: cancel() may run from a signal handler interrupting register()
        self._lock = threading.RLock()
        self._event = threading.Event()
        self._callbacks = []

    @property
    def cancelled(self):
        return self._event.is_set()

    def cancel(self):
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def register(self, callback, /):
        if not callable(callback):
            raise TypeError("register() argument must be callable")
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister():
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None

    def raise_if_cancelled(self):
        if self.cancelled:
            raise OperationCancelledError()

    def wait(self, timeout=None, /):
        return self._event.wait(timeout)

    async def wait_async(self):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def wake():
            try:
                loop.call_soon_threadsafe(lambda: future.done() or future.set_result(None))
            except RuntimeError:
                pass  # loop closed

        unregister = self.register(wake)
        try:
            await future
        finally:
            unregister()

    def __repr__(self):
        return "cancellation-token(cancelled=%r)" % self.cancelled


def _signals():
    return tuple(
        getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
    )


class CancellationController:
    """
    Cooperative token + timeout token + signal subscriptions for one run.
    """

    def __init__(self, timeout=5.0, /, *, signals=True):
        if not isinstance(timeout, int | float) or isinstance(timeout, bool):
            raise TypeError("CancellationController() 'timeout' must be a number")
        if timeout < 0:
            raise ValueError("CancellationController() 'timeout' cannot be negative")
        self.timeout = timeout
        self.signals = bool(signals)
        self.token = CancellationToken()
        self.timeout_token = CancellationToken()
        self._state = State.RUNNING
        self._lock = threading.RLock()
        self._timer = None
        self._previous = {}

    @property
    def state(self):
        return self._state

    @property
    def requested(self):
        """
        True once an interrupt was received (whether or not the timeout expired).
        """
        return self._state in (State.CANCEL_REQUESTED, State.TIMEOUT_EXPIRED)

    def __enter__(self):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if self.signals and threading.current_thread() is threading.main_thread():
            for signum in _signals():
                previous = signal.getsignal(signum)
                if loop is not None:
                    try:
                        # wakes the loop even when the signal lands on a worker thread
                        loop.add_signal_handler(signum, self.interrupt)
                    except (NotImplementedError, RuntimeError, ValueError):
                        pass
                    else:
                        self._previous[signum] = (previous, loop)
                        continue
                try:
                    signal.signal(signum, self._handle)
                except (OSError, ValueError):
                    continue
                self._previous[signum] = (previous, None)
        return self

    def __exit__(self, *exc_info):
        while self._previous:
            signum, (handler, owner) = self._previous.popitem()
            if owner is not None and not owner.is_closed():
                owner.remove_signal_handler(signum)
            signal.signal(signum, signal.SIG_DFL if handler is None else handler)
        with self._lock:
            if self._state in (State.RUNNING, State.CANCEL_REQUESTED):
                self._state = State.COMPLETED
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _handle(self, signum, frame):
        self.interrupt()

    def interrupt(self):
        """
        Request cancellation; return True for the first request only.

        The countdown runs on a timer thread so that it expires even while
        the interrupted body keeps its event loop busy.
        """
        with self._lock:
            if self._state is not State.RUNNING:
                return False
            self._state = State.CANCEL_REQUESTED
            self._timer = threading.Timer(self.timeout, self._expire)
            self._timer.daemon = True
            self._timer.start()
        self.token.cancel()
        return True

    def _expire(self):
        with self._lock:
            if self._state is not State.CANCEL_REQUESTED:
                return
            self._state = State.TIMEOUT_EXPIRED
        self.timeout_token.cancel()

    async def run(self, awaitable, /):
        """
        Await `awaitable`, abandoning it when the timeout token fires first.

        Raises OperationCancelledError when abandoned; otherwise returns the
        result (or raises the exception) of `awaitable`.
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.timeout_token.wait_async())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        raise OperationCancelledError(
            "The operation was cancelled after a %s second grace period." % format(self.timeout, "g")
        )


__all__ = (
    "State",
    "CancellationToken",
    "CancellationController",
)
