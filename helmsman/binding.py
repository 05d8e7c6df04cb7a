"""
Parameter binding: argument tokens into typed values.

Binder(command).bind(tokens) returns a Binding, either the bound values (one
per non-service parameter, in declaration order) or a help/version shortcut.
Binding problems are raised as faults:

- ArgumentNameNotFoundError(token): unknown "--name"/"-x", or a bare token
  with no positional parameter left to take it.
- ArgumentParseError(name, raw): missing or malformed value.
- RequiredArgumentMissingError(name): a required parameter never appeared.

Token grammar
- "--name", "-x": open a parameter; "--name=value" carries the value inline.
- Anything else (including negative numbers such as "-5") is a bare token.
- A flag takes no value; a directly following bare "true"/"false" overrides.
- Scalars, nullables, objects and arrays take the next token verbatim.
- A variadic parameter consumes every remaining token, switches included.
- When an option repeats, the last occurrence wins.
"""
import difflib
import enum
import re
from collections import deque

from .arguments import Kind
from .faults import ArgumentNameNotFoundError, ArgumentParseError, RequiredArgumentMissingError
from .utils import *

_SWITCH = re.compile(r"(?P<spelling>--?[^\W\d][\w-]*)(?:=(?P<value>.*))?", re.DOTALL)


class Shortcut(enum.Enum):
    HELP = "help"
    VERSION = "version"


class Binding(metaclass=SpecType):
    """
    Outcome of a successful bind: read-only `values`, or a `shortcut` signal.
    """
    __introspectable__ = ("values", "shortcut")

    def __new__(cls, values=None, shortcut=None):
        if shortcut is not None and not isinstance(shortcut, Shortcut):
            raise TypeError(f"{cls.__typename__} 'shortcut' must be a Shortcut member")
        self = super().__new__(cls)
        self._values = dict(values or {})
        self._shortcut = shortcut
        return self


class Binder:
    """
    Binds argument tokens for one command.
    """

    def __init__(self, command, /):
        self.command = command
        self.switches = command.switches
        self.parameters = tuple(parameter for parameter in command.parameters if not parameter.service)

    def bind(self, tokens, /):
        tokens = list(tokens)

        if not tokens:
            if any(parameter.required for parameter in self.parameters):
                return Binding(shortcut=Shortcut.HELP)
            return Binding({parameter.name: parameter.fallback() for parameter in self.parameters})

        if len(tokens) == 1:
            match tokens[0]:
                case "-h" | "--help":
                    return Binding(shortcut=Shortcut.HELP)
                case "--version":
                    return Binding(shortcut=Shortcut.VERSION)

        values = {}
        positionals = deque(self.command.positionals)
        queue = deque(tokens)
        index = 0

        while queue:
            token = queue.popleft()
            index += 1

            if match := _SWITCH.fullmatch(token):
                parameter = self._lookup(match["spelling"], index)
                inline = match["value"]
                if parameter.kind is Kind.FLAG:
                    if inline is not None:
                        values[parameter.name] = self._parse(parameter, inline)
                    elif queue and queue[0].strip().lower() in ("true", "false"):
                        index += 1
                        values[parameter.name] = self._parse(parameter, queue.popleft())
                    else:
                        values[parameter.name] = True
                    continue
                if inline is None:
                    if not queue:
                        raise ArgumentParseError(
                            parameter.name,
                            "",
                            hint="%s expects a value after it" % match["spelling"],
                        )
                    index += 1
                    inline = queue.popleft()
                values[parameter.name] = self._parse(parameter, inline)
                continue

            if not positionals:
                raise self._unexpected(token, index)

            parameter = positionals[0]
            if parameter.kind is Kind.VARIADIC:
                values[parameter.name] = [self._parse(parameter, item) for item in (token, *queue)]
                queue.clear()
                continue

            positionals.popleft()
            values[parameter.name] = self._parse(parameter, token)

        for parameter in self.parameters:
            if parameter.name in values:
                continue
            if parameter.required:
                raise RequiredArgumentMissingError(
                    parameter.name,
                    hint="pass it as %s" % (
                        "the %s positional argument" % ordinal(self.command.positionals.index(parameter) + 1)
                        if parameter.positional else "%s <value>" % parameter.spelling
                    ),
                )
            values[parameter.name] = parameter.fallback()

        return Binding({parameter.name: values[parameter.name] for parameter in self.parameters})

    def _lookup(self, spelling, index):
        try:
            return self.switches[spelling]
        except KeyError:
            pass
        suggestions = difflib.get_close_matches(spelling, self.switches.keys(), 3)
        hint = "unknown option at the %s position" % ordinal(index)
        if suggestions:
            hint += ", did you mean %r?" % suggestions[0]
        raise ArgumentNameNotFoundError(spelling, hint=hint, index=index, suggestions=tuple(suggestions))

    def _unexpected(self, token, index):
        suggestions = difflib.get_close_matches("--" + token, self.switches.keys(), 1)
        hint = "no positional argument is left to take the %s value" % ordinal(index)
        if suggestions:
            hint += ", did you mean %r?" % suggestions[0]
        return ArgumentNameNotFoundError(token, hint=hint, index=index, suggestions=tuple(suggestions))

    @staticmethod
    def _parse(parameter, raw):
        try:
            return parameter.coerce(raw)
        except Exception as exception:
            raise ArgumentParseError(parameter.name, raw, hint=str(exception)) from exception


def bind(command, tokens, /):
    return Binder(command).bind(tokens)


__all__ = (
    "Shortcut",
    "Binding",
    "Binder",
    "bind",
)
