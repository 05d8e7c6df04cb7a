"""
Command specifications and the command registry.

Overview
- Command: immutable descriptor binding a full command name (whitespace
  separated path, "" for the root command) to a callback, its ordered
  parameters, its ordered filters, and a one-line summary.
- Registry: ordered collection of commands plus global filters, filled once
  at startup and sealed by the dispatcher before the first run.

Invariants (checked at construction, ValueError on violation)
- parameter names, aliases and CLI spellings are unique within a command
- at most one variadic parameter, and it is the last positional parameter
- the token keyword does not clash with a parameter name
- name segments never start with "-"
"""
import copy
import inspect

from .arguments import Kind, Parameter
from .faults import CommandRegisteredInLoopError, DuplicateCommandNameError
from .filters import verify
from .utils import *


def _sanitize(cls, metadata, /):
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    segments = name.split()
    for segment in segments:
        if segment.startswith("-"):
            raise ValueError(f"{cls.__typename__} name segments cannot start with '-', got {segment!r}")
    metadata["name"] = " ".join(segments)

    if not callable(metadata["callback"]):
        raise TypeError(f"{cls.__typename__} 'callback' must be callable")

    parameters = tuple(metadata["parameters"])
    names, spellings = set(), set()
    variadic = False
    for parameter in parameters:
        if not isinstance(parameter, Parameter):
            raise TypeError(f"{cls.__typename__} 'parameters' must only contain Parameter instances")
        if parameter.name in names:
            raise ValueError(f"{cls.__typename__} parameter names must be unique, {parameter.name!r} is repeated")
        names.add(parameter.name)
        if parameter.service:
            continue
        for spelling in parameter.spellings:
            if spelling in spellings:
                raise ValueError(f"{cls.__typename__} parameter spelling {spelling!r} is used more than once")
            spellings.add(spelling)
        if parameter.positional and variadic:
            raise ValueError(f"{cls.__typename__} the variadic parameter must be the last positional parameter")
        variadic |= parameter.kind is Kind.VARIADIC
    metadata["parameters"] = parameters

    filters = tuple(metadata["filters"])
    for filter in filters:
        if not isinstance(filter, type):
            raise TypeError(f"{cls.__typename__} 'filters' must only contain Filter types")
    metadata["filters"] = filters

    if not isinstance(summary := metadata["summary"], str | Unset | None):
        raise TypeError(f"{cls.__typename__} 'summary' must be a string")
    if summary is Unset:
        summary = (inspect.getdoc(metadata["callback"]) or "").strip().partition("\n")[0]
    metadata["summary"] = summary.strip() if summary else None

    if not isinstance(token := metadata["token"], str | Unset | None):
        raise TypeError(f"{cls.__typename__} 'token' must be a string")
    elif isinstance(token, str):
        if not token.isidentifier():
            raise ValueError(f"{cls.__typename__} 'token' must be a valid identifier, got {token!r}")
        if token in names:
            raise ValueError(f"{cls.__typename__} 'token' clashes with the parameter {token!r}")
    metadata["token"] = coalesce(token)


class Command(metaclass=SpecType):
    """
    Immutable command descriptor.

    Properties
    - The names listed in __introspectable__ are read-only attributes.
    - segments: the name split into path segments.
    - switches: mapping of every CLI spelling to its parameter.
    - positionals: positional/variadic parameters in declaration order.
    - services: parameters resolved from the service lookup.
    """
    __introspectable__ = (
        "name",
        "callback",
        "parameters",
        "filters",
        "summary",
        "token",
    )
    __displayable__ = (
        "name",
        "parameters",
        "filters",
        "summary",
    )
    __positional__ = ("name", "callback")

    def __new__(cls, name, callback, /, parameters=(), filters=(), summary=Unset, *, token=Unset):
        metadata = {
            "name": name,
            "callback": callback,
            "parameters": parameters,
            "filters": filters,
            "summary": summary,
            "token": token,
        }
        _sanitize(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    @property
    def segments(self):
        return tuple(self._name.split())

    @property
    def switches(self):
        return {
            spelling: parameter
            for parameter in self._parameters if not parameter.service and not parameter.positional
            for spelling in parameter.spellings
        }

    @property
    def positionals(self):
        return tuple(parameter for parameter in self._parameters if parameter.positional and not parameter.service)

    @property
    def services(self):
        return tuple(parameter for parameter in self._parameters if parameter.service)


class Registry:
    """
    Ordered command collection plus global filters.

    - use(filter): append a global filter (outermost first, registration order).
    - register(command): add a command; names are unique.
    - seal(): freeze the registry; global filters are prepended to every
      command's own filters. Any later use()/register() is rejected.
    - resolve(argv): longest-prefix match of the leading tokens.
    """

    def __init__(self, commands=(), filters=()):
        self._commands = {}
        self._filters = []
        self._sealed = False
        for filter in filters:
            self.use(filter)
        for command in commands:
            self.register(command)

    @property
    def commands(self):
        return tuple(self._commands.values())

    @property
    def filters(self):
        return tuple(self._filters)

    @property
    def sealed(self):
        return self._sealed

    def use(self, filter, /):
        if self._sealed:
            raise CommandRegisteredInLoopError(getattr(filter, "__qualname__", repr(filter)))
        self._filters.append(verify(filter))
        return filter

    def register(self, command, /):
        if not isinstance(command, Command):
            raise TypeError("register() argument must be a Command")
        if self._sealed:
            raise CommandRegisteredInLoopError(command.name)
        if command.name in self._commands:
            raise DuplicateCommandNameError(command.name)
        for filter in command.filters:
            verify(filter)
        self._commands[command.name] = command
        return command

    def seal(self):
        if self._sealed:
            return self
        for name, command in self._commands.items():
            self._commands[name] = copy.replace(command, filters=(*self._filters, *command.filters))
        self._sealed = True
        return self

    def resolve(self, argv, /):
        """
        Return (command, remaining tokens) for the longest registered name
        prefixing argv, or None when nothing matches (not even a root command).
        """
        argv = list(argv)
        # token by token: a single "user add" token is not the path user/add
        paths = {command.segments: command for command in self._commands.values()}
        depth = max(map(len, paths), default=0)
        for length in range(min(depth, len(argv)), -1, -1):
            if (command := paths.get(tuple(argv[:length]))) is not None:
                return command, argv[length:]
        return None

    def __contains__(self, name):
        return name in self._commands

    def __iter__(self):
        return iter(self._commands.values())

    def __len__(self):
        return len(self._commands)

    def __getitem__(self, name):
        return self._commands[name]


__all__ = (
    "Command",
    "Registry",
)
