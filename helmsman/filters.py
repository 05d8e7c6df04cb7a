"""
Filters (interceptors) and the per-run filter chain.

Overview
- Context: the per-run invocation context handed to every link.
- Filter: base class of interceptors. A filter is constructed with exactly one
  argument, the next link, and implements `async invoke(context, token)`.
  It may act before delegating (await self.next.invoke(context, token)),
  after it returns or raises, or not delegate at all (short-circuit).
- interceptor: decorator turning `async def f(context, token, next)` into a
  Filter subclass; `next` is the awaitable next invoker.
- verify(): registration-time shape check (FilterConstructorError).
- compose(): builds a fresh chain per run, outermost filter first, the command
  handler as the innermost link.
- detach(): runs a chain on a worker thread with its own event loop, so the
  caller can abandon it.

Ordering
- Given filters [A, B] and a handler C, the observed order is
  A-before, B-before, C, B-after, A-after.
"""
import asyncio
import inspect
import threading

from .faults import FilterConstructorError
from .utils import *


class Context:
    """
    Per-run invocation context.

    Attributes
    - command: full name of the running command ("" for the root command).
    - arguments: the tokens that followed the command path.
    - values: bound parameter values (service parameters included).
    - state: free slot for filters to pass data down and up the chain.
    - exit_code: exit code reported when the handler returns no int.
    """
    __slots__ = ("command", "arguments", "values", "state", "exit_code")

    def __init__(self, command, arguments=(), values=None, state=None):
        self.command = command
        self.arguments = tuple(arguments)
        self.values = dict(values or {})
        self.state = state
        self.exit_code = 0

    def __repr__(self):
        return "context(command=%r, arguments=%r, values=%r, state=%r, exit_code=%r)" % (
            self.command, self.arguments, self.values, self.state, self.exit_code
        )


class Filter:
    """
    Base interceptor: delegates straight to the next link.
    """

    def __init__(self, next, /):
        self.next = next

    async def invoke(self, context, token):
        await self.next.invoke(context, token)


def interceptor(function, /):
    """
    Turn `async def function(context, token, next)` into a Filter subclass.

    Example
        @interceptor
        async def timing(context, token, next):
            started = time.monotonic()
            await next(context, token)
            print(time.monotonic() - started)
    """
    if not inspect.iscoroutinefunction(function):
        raise TypeError("@interceptor must be applied to an 'async def' function")

    @rename("invoke")
    async def invoke(self, context, token):
        return await function(context, token, self.next.invoke)

    return type(function.__name__, (Filter,), {
        "invoke": invoke,
        "__doc__": function.__doc__,
        "__module__": function.__module__,
        "__qualname__": function.__qualname__,
    })


def verify(filter, /):
    """
    Check that `filter` is a usable Filter type; return it unchanged.

    Rules
    - a class deriving from Filter
    - its constructor takes exactly one required positional argument (the
      next link) and no other required argument
    - invoke is an `async def`
    """
    if not isinstance(filter, type) or not issubclass(filter, Filter):
        raise FilterConstructorError(filter, "must be a subclass of Filter")

    try:
        signature = inspect.signature(filter)
    except (TypeError, ValueError):
        raise FilterConstructorError(filter, "has an unreadable constructor signature") from None

    required = [
        parameter for parameter in signature.parameters.values()
        if parameter.default is inspect.Parameter.empty
        and parameter.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    if len(required) != 1 or required[0].kind is inspect.Parameter.KEYWORD_ONLY:
        raise FilterConstructorError(
            filter, "must take exactly one constructor argument (the next filter), found %d" % len(required)
        )

    if not inspect.iscoroutinefunction(filter.invoke):
        raise FilterConstructorError(filter, "must define 'async def invoke(self, context, token)'")

    return filter


def _settle(future, result, exception):
    if future.done():
        return
    if exception is not None:
        future.set_exception(exception)
    else:
        future.set_result(result)


async def _offload(function, name):
    """
    Run `function()` on a daemon worker thread and await its result.

    The worker is never joined: when the timeout race abandons the await, the
    thread is left to finish (or die with the process) on its own.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def work():
        result = exception = None
        try:
            result = function()
        except BaseException as caught:
            exception = caught
        try:
            loop.call_soon_threadsafe(_settle, future, result, exception)
        except RuntimeError:
            pass  # loop already closed, nobody is waiting

    threading.Thread(target=work, name="helmsman:%s" % name, daemon=True).start()
    return await future


async def detach(link, context, token, /):
    """
    Await `link.invoke(context, token)` running on an event loop of its own.

    The chain runs inside asyncio.run() on a daemon worker thread, so a body
    that blocks its loop or keeps swallowing CancelledError never holds up the
    caller's loop. Cancelling the await forwards the cancellation to the
    worker's task and returns immediately, whatever the body does with it.
    """
    worker = {}
    ready, abandoned = threading.Event(), threading.Event()

    async def main():
        worker["loop"], worker["task"] = asyncio.get_running_loop(), asyncio.current_task()
        ready.set()
        if abandoned.is_set():
            return None
        return await link.invoke(context, token)

    try:
        return await _offload(lambda: asyncio.run(main()), context.command or "root")
    except asyncio.CancelledError:
        abandoned.set()
        if ready.is_set():
            try:
                worker["loop"].call_soon_threadsafe(worker["task"].cancel)
            except RuntimeError:
                pass  # worker loop already closed
        raise


class Handler:
    """
    Innermost link: calls the command callback with the bound values.

    The callback receives context.values as keyword arguments (plus the
    cancellation token under command.token when set). An int return value
    becomes context.exit_code.
    """

    def __init__(self, command, /):
        self.command = command

    async def invoke(self, context, token):
        callback = self.command.callback
        kwargs = dict(context.values)
        if self.command.token:
            kwargs[self.command.token] = token

        if inspect.iscoroutinefunction(callback):
            result = await callback(**kwargs)
        else:
            result = await _offload(lambda: callback(**kwargs), self.command.name or "root")
            if inspect.isawaitable(result):
                result = await result

        if isinstance(result, int) and not isinstance(result, bool):
            context.exit_code = result


def compose(command, /):
    """
    Build a fresh chain for one run of `command` and return its outermost link.
    """
    link = Handler(command)
    for filter in reversed(command.filters):
        link = filter(link)
    return link


__all__ = (
    "Context",
    "Filter",
    "Handler",
    "interceptor",
    "verify",
    "compose",
    "detach",
)
