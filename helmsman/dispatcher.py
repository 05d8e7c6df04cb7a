"""
Dispatching: argument vector in, exit code out.

Flow of one run
1. resolve the command (longest name prefix); none → overview
   (exit 0 for no arguments or -h/--help, version for --version, else exit 1)
2. bind the remaining tokens; fault → one logged line, exit 1;
   help/version shortcut → rendered text, exit 0
3. inject service parameters from the configured lookup; a required service
   missing from a per-run config is reported, exit 1
4. validate every rule; failures → aggregated message, exit 1
5. compose a fresh filter chain and run it on a worker thread with an event
   loop of its own, under a CancellationController
6. exit code: the handler's int (or context.exit_code), 0 by default;
   130 once an interrupt led to cancellation; 1 with the full traceback
   logged for anything else escaping the chain

Registration problems (duplicate names, malformed filters, late registration,
unresolvable services) are raised to the host: no dispatcher is produced.
"""
import asyncio
import copy
import shlex
import sys
import traceback
from collections.abc import Iterable

from . import faults
from .binding import Shortcut, bind
from .cancellation import CancellationController
from .commands import Command, Registry
from .config import RuntimeConfig
from .faults import CommandException, OperationCancelledError, UnhandledExecutionError, UnresolvableServiceError
from .filters import Context, compose, detach
from .rendering import render_help, render_overview, render_version
from .utils import *
from .validation import validate


def _tokenize(argv):
    if argv is Unset:
        return sys.argv[1:]
    if isinstance(argv, str):
        return shlex.split(argv)
    if isinstance(argv, Iterable):
        tokens = list(argv)
        for token in tokens:
            if not isinstance(token, str):
                raise TypeError("run() argument must be a string or an iterable of strings")
        return tokens
    raise TypeError("run() argument must be a string or an iterable of strings")


class Dispatcher:
    """
    Runs commands from a sealed registry.

    Creating a dispatcher seals the registry and checks that every required
    service parameter resolves through config.services.
    """

    def __init__(self, registry, /, config=Unset):
        if not isinstance(registry, Registry):
            raise TypeError("Dispatcher() argument must be a Registry")
        config = coalesce(config, RuntimeConfig())
        if not isinstance(config, RuntimeConfig):
            raise TypeError("Dispatcher() 'config' must be a RuntimeConfig")
        _check_services(registry, config)
        self.registry = registry.seal()
        self.config = config

    def run(self, argv=Unset, /, config=Unset):
        """
        Dispatch `argv` (list of tokens, shell-like string, or Unset for
        sys.argv[1:]) on a fresh event loop and return the exit code.
        """
        return asyncio.run(self.run_async(argv, config))

    async def run_async(self, argv=Unset, /, config=Unset):
        config = coalesce(config, self.config)
        tokens = _tokenize(argv)

        if (resolved := self.registry.resolve(tokens)) is None:
            match tokens:
                case [] | ["-h"] | ["--help"]:
                    config.emit(render_overview(self.registry, config.prog))
                    return 0
                case ["--version"]:
                    config.emit(render_version(config))
                    return 0
            config.emit(render_overview(self.registry, config.prog))
            return 1
        command, arguments = resolved

        try:
            binding = bind(command, arguments)
        except CommandException as fault:
            _report(fault, config)
            return 1

        match binding.shortcut:
            case Shortcut.HELP:
                config.emit(render_help(command, config.prog))
                return 0
            case Shortcut.VERSION:
                config.emit(render_version(config))
                return 0

        values = dict(binding.values)
        for parameter in command.services:
            if (value := config.lookup(parameter.type)) is Unset:
                if parameter.required:
                    # a per-run config may lack what the constructor-time one had
                    _report(UnresolvableServiceError(command.name, parameter.name, parameter.type), config)
                    return 1
                value = parameter.fallback()
            values[parameter.name] = value
        values = {parameter.name: values[parameter.name] for parameter in command.parameters}

        try:
            validate(command, values)
        except CommandException as fault:
            _report(fault, config)
            return 1

        context = Context(command.name, arguments, values)
        chain = compose(command)
        with CancellationController(config.timeout, signals=config.signals) as controller:
            try:
                await controller.run(detach(chain, context, controller.token))
            except OperationCancelledError:
                return 130
            except asyncio.CancelledError:
                if controller.requested:
                    return 130
                raise
            except CommandException as fault:
                _report(fault, config)
                return 1
            except Exception as exception:
                _report(UnhandledExecutionError(exception, traceback.format_exc()), config)
                return 1
        return context.exit_code


def _check_services(registry, config):
    for command in registry:
        for parameter in command.services:
            if parameter.required and config.lookup(parameter.type) is Unset:
                raise UnresolvableServiceError(command.name, parameter.name, parameter.type)


def _report(fault, config):
    """
    Log a fault: one plain line through log_error, or the rich rendering on
    stderr when fancy output is enabled.
    """
    if config.fancy:
        faults.console.print(copy.replace(
            fault,
            prog=coalesce(config.prog, None),
            colorful=config.colorful,
            fancy=True,
        ))
        return
    config.emit_error(str(fault))


class App:
    """
    Registrar API: collect commands and global filters, then run.

    Example
        app = App()

        @app.command("add", Parameter("x", int), Parameter("y", int))
        def add(x, y):
            print(x + y)

        sys.exit(app.run())
    """

    def __init__(self, config=Unset):
        self.registry = Registry()
        self.config = config
        self._dispatcher = None

    def add(self, name, callback, /, *parameters, filters=(), summary=Unset, token=Unset):
        self.registry.register(Command(name, callback, parameters, filters, summary, token=token))
        return self

    def command(self, name="", /, *parameters, filters=(), summary=Unset, token=Unset):
        """
        Decorator form of add(); the decorated function is returned unchanged.
        """
        @rename("command")
        def wrapper(callback, /):
            self.add(name, callback, *parameters, filters=filters, summary=summary, token=token)
            return callback

        return wrapper

    def use(self, filter, /):
        """
        Add a global filter; usable as a class decorator.
        """
        return self.registry.use(filter)

    def build(self):
        if self._dispatcher is None:
            self._dispatcher = Dispatcher(self.registry, self.config)
        return self._dispatcher

    def run(self, argv=Unset, /):
        return self.build().run(argv)

    async def run_async(self, argv=Unset, /):
        return await self.build().run_async(argv)


def run(callback, argv=Unset, /, *parameters, filters=(), config=Unset, token=Unset):
    """
    Run a single root command built from `callback` and return the exit code.
    """
    return App(config).add("", callback, *parameters, filters=filters, token=token).run(argv)


__all__ = (
    "Dispatcher",
    "App",
    "run",
)
