"""
Helmsman faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues.
  Codes are grouped by domain to keep copy consistent and make logs/searches
  predictable.
- CommandException: base type that carries message + options and knows how to
  render itself (plain line for sinks, rich renderable for consoles).
- Registration faults abort startup; binding, validation, and execution faults
  are caught at the dispatcher boundary and turned into exit codes.

Integration
- The binder and validator raise faults; the dispatcher reports them through the
  configured sink (str(fault), a single line) or, when fancy output is enabled,
  prints the rich rendering on stderr.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the engine (stable identifiers).

    grouping (by high-level domain)
    - registration (100xx): DUPLICATE_COMMAND_NAME, FILTER_CONSTRUCTOR,
      COMMAND_REGISTERED_IN_LOOP, UNRESOLVABLE_SERVICE
    - binding (110xx): ARGUMENT_NAME_NOT_FOUND, ARGUMENT_PARSE,
      REQUIRED_ARGUMENT_MISSING
    - validation (120xx): VALIDATION
    - execution (130xx): OPERATION_CANCELLED, UNHANDLED_EXECUTION

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- registration errors (10xxx) ---
    DUPLICATE_COMMAND_NAME      = 10001
    FILTER_CONSTRUCTOR          = 10002
    COMMAND_REGISTERED_IN_LOOP  = 10003
    UNRESOLVABLE_SERVICE        = 10004

    # --- binding errors (11xxx) ---
    ARGUMENT_NAME_NOT_FOUND     = 11001
    ARGUMENT_PARSE              = 11002
    REQUIRED_ARGUMENT_MISSING   = 11003

    # --- validation errors (12xxx) ---
    VALIDATION                  = 12001

    # --- execution errors (13xxx) ---
    OPERATION_CANCELLED         = 13001
    UNHANDLED_EXECUTION         = 13002

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    base of every fault raised by the engine.

    contract
    - message: the single user-facing line (also str(fault)).
    - options: read-only mapping with at least code/title/hint plus any
      fault specifics (name, value, token, ...).
    - __rich__ renders a header, the message, and the hint.
    - copy.replace(fault, **options) returns the same fault with merged options
      (used by the dispatcher to attach prog/colorful/fancy before printing).
    """
    code = Unset
    title = Unset

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType({
            "code": type(self).code,
            "title": type(self).title,
            "hint": "",
            "colorful": False,
            "fancy": False,
        } | options)

    def __str__(self):
        return self.message or ""

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if self.options["colorful"] else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.options["colorful"]:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        prog = text(self.options.get("prog") or getattr(main, "__prog__", "helmsman"), styler("prog-name"))
        code = self.options["code"]

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code.normalize() if isinstance(code, FaultCode) else "", styler("code")),
            " | ",
            text(str(self.options["title"] or "error").title(), styler("error-title")),
            " ]"
        )
        message = text(self.message, styler("error-message"))
        renders = [message]
        if self.options["hint"]:
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(self.options["hint"], styler("hint"))))

        if self.options["fancy"]:
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        fault = type(self).__new__(type(self), *self.args)
        fault.__dict__.update(self.__dict__)
        fault.options = MappingProxyType({**self.options, **overrides})
        return fault


class DuplicateCommandNameError(CommandException):
    code = FaultCode.DUPLICATE_COMMAND_NAME
    title = "duplicate command name"

    def __init__(self, name, /, **options):
        super().__init__(
            "Command name '%s' is duplicated." % name,
            name=name,
            hint="give every registered command a unique full name",
            **options
        )


class FilterConstructorError(CommandException):
    code = FaultCode.FILTER_CONSTRUCTOR
    title = "malformed filter"

    def __init__(self, filter, reason, /, **options):
        super().__init__(
            "Filter '%s' %s." % (getattr(filter, "__qualname__", repr(filter)), reason),
            filter=filter,
            hint="a filter must subclass Filter and take exactly one constructor argument: the next filter",
            **options
        )


class CommandRegisteredInLoopError(CommandException):
    code = FaultCode.COMMAND_REGISTERED_IN_LOOP
    title = "late registration"

    def __init__(self, name, /, **options):
        super().__init__(
            "Command '%s' cannot be registered once dispatching has started." % name,
            name=name,
            hint="register every command and filter before the first run",
            **options
        )


class UnresolvableServiceError(CommandException):
    code = FaultCode.UNRESOLVABLE_SERVICE
    title = "unresolvable service"

    def __init__(self, command, name, type, /, **options):
        super().__init__(
            "Service parameter '%s' of command '%s' cannot be resolved for type '%s'." % (
                name, command, getattr(type, "__qualname__", repr(type))
            ),
            command=command,
            name=name,
            type=type,
            hint="provide the service through RuntimeConfig(services=...) or give the parameter a default",
            **options
        )


class ArgumentNameNotFoundError(CommandException):
    code = FaultCode.ARGUMENT_NAME_NOT_FOUND
    title = "unknown argument"

    def __init__(self, token, /, **options):
        super().__init__("Argument '%s' is not recognized." % token, token=token, **options)


class ArgumentParseError(CommandException):
    code = FaultCode.ARGUMENT_PARSE
    title = "argument parse failed"

    def __init__(self, name, value, /, **options):
        super().__init__(
            "Argument '%s' failed to parse, provided value: %s" % (name, value),
            name=name,
            value=value,
            **options
        )


class RequiredArgumentMissingError(CommandException):
    code = FaultCode.REQUIRED_ARGUMENT_MISSING
    title = "missing argument"

    def __init__(self, name, /, **options):
        super().__init__("Required argument '%s' was not specified." % name, name=name, **options)


class ValidationError(CommandException):
    code = FaultCode.VALIDATION
    title = "validation failed"

    def __init__(self, message, /, **options):
        super().__init__(message, **options)

    @property
    def failures(self):
        """
        the individual failure lines, in parameter-declaration order.
        """
        return tuple(self.message.splitlines())


class OperationCancelledError(CommandException):
    code = FaultCode.OPERATION_CANCELLED
    title = "cancelled"

    def __init__(self, message="The operation was cancelled.", /, **options):
        super().__init__(message, **options)


class UnhandledExecutionError(CommandException):
    """
    wraps an exception escaping a filter or command body.

    the message carries the full traceback (not only the exception text) so
    the logged diagnostic is complete.
    """
    code = FaultCode.UNHANDLED_EXECUTION
    title = "unhandled error"

    def __init__(self, exception, diagnostic, /, **options):
        super().__init__(diagnostic.rstrip("\n"), exception=exception, **options)


__all__ = (
    "FaultCode",
    "CommandException",
    "DuplicateCommandNameError",
    "FilterConstructorError",
    "CommandRegisteredInLoopError",
    "UnresolvableServiceError",
    "ArgumentNameNotFoundError",
    "ArgumentParseError",
    "RequiredArgumentMissingError",
    "ValidationError",
    "OperationCancelledError",
    "UnhandledExecutionError",
)
