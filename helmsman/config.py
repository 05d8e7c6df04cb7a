"""
Runtime configuration handed to the dispatcher.

RuntimeConfig groups what a host sets once at process start and the engine
treats as read-only during a run:

- log / log_error: single-argument "emit line" sinks. The default log prints
  verbatim through a rich Console on stdout; log_error falls back to log.
- services: lookup for service parameters, a mapping keyed by type or a
  callable taking the type (None means "not available").
- timeout: grace period in seconds between the first interrupt and the
  forced abandon (default 5).
- version / distribution: version text, or the installed distribution whose
  metadata supplies it.
- prog: program name shown in usage lines and fault headers.
- fancy / colorful: print faults as rich renderables on stderr (boxed when
  fancy, styled when colorful) instead of the plain line through log_error.
- signals: subscribe to interrupt signals while a command runs.
"""
import builtins
from collections.abc import Mapping

from rich.console import Console

from .utils import *

console = Console(markup=False, highlight=False, emoji=False, soft_wrap=True)


class RuntimeConfig(metaclass=SpecType):
    """
    Immutable, keyword-only runtime settings; copy.replace() derives variants.
    """
    __introspectable__ = (
        "log",
        "log_error",
        "services",
        "timeout",
        "version",
        "distribution",
        "prog",
        "fancy",
        "colorful",
        "signals",
    )
    __displayable__ = (
        "timeout",
        "version",
        "distribution",
        "prog",
        "fancy",
        "colorful",
        "signals",
    )

    def __new__(
            cls,
            *,
            log=Unset,
            log_error=Unset,
            services=Unset,
            timeout=5.0,
            version=Unset,
            distribution=Unset,
            prog=Unset,
            fancy=False,
            colorful=False,
            signals=True
    ):
        for label, sink in (("log", log), ("log_error", log_error)):
            if sink is not Unset and not callable(sink):
                raise TypeError(f"{cls.__typename__} {label!r} must be callable")
        if services is not Unset and not isinstance(services, Mapping) and not callable(services):
            raise TypeError(f"{cls.__typename__} 'services' must be a mapping or a callable")
        if not isinstance(timeout, int | float) or isinstance(timeout, bool):
            raise TypeError(f"{cls.__typename__} 'timeout' must be a number")
        if timeout < 0:
            raise ValueError(f"{cls.__typename__} 'timeout' cannot be negative")
        for label, text in (("version", version), ("distribution", distribution), ("prog", prog)):
            if not isinstance(text, str | Unset):
                raise TypeError(f"{cls.__typename__} {label!r} must be a string")
            elif isinstance(text, str) and not text.strip():
                raise ValueError(f"{cls.__typename__} {label!r} cannot be empty")

        self = super().__new__(cls)
        self._log = log
        self._log_error = log_error
        self._services = services
        self._timeout = timeout
        self._version = version
        self._distribution = distribution
        self._prog = prog
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)
        self._signals = bool(signals)
        return self

    def emit(self, line, /):
        coalesce(self._log, console.print)(line)

    def emit_error(self, line, /):
        coalesce(self._log_error, coalesce(self._log, console.print))(line)

    def lookup(self, type, /):
        """
        Resolve a service instance by type; Unset when none is available.

        A mapping is searched by exact key first, then for any value that is
        an instance of `type`.
        """
        services = self._services
        if services is Unset:
            return Unset
        if isinstance(services, Mapping):
            try:
                return services[type]
            except KeyError:
                pass
            if isinstance(type, builtins.type):
                for value in services.values():
                    if isinstance(value, type):
                        return value
            return Unset
        value = services(type)
        return Unset if value is None else value


__all__ = (
    "RuntimeConfig",
)
