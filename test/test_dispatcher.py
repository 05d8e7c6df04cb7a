"""
Dispatcher end-to-end tests (scenarios, exit codes, filters, cancellation).

Conventions
- Test method names follow CamelCase per project convention.
- Output is captured through list-backed log sinks.
"""
import asyncio
import copy
import io
import signal
import time
import unittest
from unittest import TestCase, mock

from rich.console import Console

from helmsman import (
    App,
    Command,
    Dispatcher,
    DuplicateCommandNameError,
    Filter,
    Kind,
    OperationCancelledError,
    Parameter,
    Predicate,
    Range,
    Registry,
    RuntimeConfig,
    UnresolvableServiceError,
    ValidationError,
    faults,
    interceptor,
    run,
)


class Database:
    pass


def recording(events, label):
    @interceptor
    async def record(context, token, next):
        events.append(label + "-before")
        await next(context, token)
        events.append(label + "-after")

    return record


class Output(TestCase):

    def setUp(self):
        self.lines = []
        self.errors = []
        self.config = RuntimeConfig(log=self.lines.append, log_error=self.errors.append, signals=False)


class TestScenarios(Output):

    def testAddBindsAndSucceeds(self):
        bound = {}
        app = App(self.config)
        app.add("add", lambda x, y: bound.update(x=x, y=y), Parameter("x", int), Parameter("y", int))
        self.assertEqual(app.run(["add", "--x", "10", "--y", "20"]), 0)
        self.assertEqual(bound, {"x": 10, "y": 20})

    def testMissingValueExitsOne(self):
        app = App(self.config)
        app.add("add", lambda x: None, Parameter("x", int))
        self.assertEqual(app.run(["add", "--x"]), 1)
        self.assertEqual(self.errors, ["Argument 'x' failed to parse, provided value: "])

    def testUnrecognizedBareTokenExitsOne(self):
        app = App(self.config)
        app.add("add", lambda x, y: None, Parameter("x", int), Parameter("y", int))
        self.assertEqual(app.run(["add", "--x", "10", "y", "20"]), 1)
        self.assertEqual(self.errors, ["Argument 'y' is not recognized."])

    def testValidationFailureExitsOne(self):
        called = []
        app = App(self.config)
        app.add("show", lambda value: called.append(value), Parameter("value", float, rules=[Range(0, 1)]))
        self.assertEqual(app.run(["show", "--value", "100"]), 1)
        self.assertEqual(self.errors, ["The field value must be between 0 and 1."])
        self.assertEqual(called, [])

    def testOptionalOnlyCommandRunsWithDefaultsOrShowsHelp(self):
        bound = []
        app = App(self.config)
        app.add("", lambda count: bound.append(count), Parameter("count", int, default=3), summary="Count things.")
        self.assertEqual(app.run([]), 0)
        self.assertEqual(bound, [3])
        self.assertEqual(app.run(["--help"]), 0)
        self.assertEqual(bound, [3])
        self.assertTrue(self.lines[-1].startswith("Usage: "))
        self.assertIn("Count things.", self.lines[-1])

    def testDuplicateNamesFailAtStartup(self):
        app = App(self.config)
        app.add("run", lambda: None)
        with self.assertRaises(DuplicateCommandNameError) as context:
            app.add("run", lambda: None)
        self.assertEqual(context.exception.options["name"], "run")


class TestExitCodes(Output):

    def testHandlerReturnValueIsExitCode(self):
        app = App(self.config)
        app.add("fail", lambda: 3)
        self.assertEqual(app.run(["fail"]), 3)

    def testAsyncHandler(self):
        async def handler(name):
            await asyncio.sleep(0)
            self.lines.append("hello " + name)
            return 0

        app = App(self.config)
        app.add("greet", handler, Parameter("name"))
        self.assertEqual(app.run("greet --name 'Ada Lovelace'"), 0)
        self.assertEqual(self.lines, ["hello Ada Lovelace"])

    def testContextExitCodeFromFilter(self):
        @interceptor
        async def deny(context, token, next):
            context.exit_code = 4

        app = App(self.config)
        app.add("guarded", lambda: 0, filters=[deny])
        self.assertEqual(app.run(["guarded"]), 4)

    def testUnhandledExceptionLogsTracebackAndExitsOne(self):
        def handler():
            raise RuntimeError("boom")

        app = App(self.config)
        app.add("explode", handler)
        self.assertEqual(app.run(["explode"]), 1)
        self.assertEqual(len(self.errors), 1)
        self.assertIn("Traceback (most recent call last)", self.errors[0])
        self.assertIn("RuntimeError: boom", self.errors[0])

    def testValidationErrorFromFilterLogsMessageOnly(self):
        @interceptor
        async def reject(context, token, next):
            raise ValidationError("The field name is reserved.")

        app = App(self.config)
        app.add("named", lambda: None, filters=[reject])
        self.assertEqual(app.run(["named"]), 1)
        self.assertEqual(self.errors, ["The field name is reserved."])

    def testRaisingRuleIsReportedAsValidationFailure(self):
        called = []
        app = App(self.config)
        app.add("open", lambda path: called.append(path),
                Parameter("path", rules=[Predicate(lambda value: int(value) > 0, "must be positive")]))
        self.assertEqual(app.run(["open", "--path", "abc"]), 1)
        self.assertEqual(self.errors, ["The field path must be positive."])
        self.assertEqual(called, [])

    def testErrorsGoToLogWhenNoErrorSink(self):
        lines = []
        app = App(RuntimeConfig(log=lines.append, signals=False))
        app.add("add", lambda x: None, Parameter("x", int))
        self.assertEqual(app.run(["add", "--x", "nope"]), 1)
        self.assertEqual(lines, ["Argument 'x' failed to parse, provided value: nope"])

    def testCooperativeCancellationExitCode(self):
        def handler():
            raise OperationCancelledError()

        app = App(self.config)
        app.add("stop", handler)
        self.assertEqual(app.run(["stop"]), 130)
        self.assertEqual(self.errors, [])

    def testModuleLevelRun(self):
        bound = []
        self.assertEqual(run(lambda value: bound.append(value), ["--value", "7"], Parameter("value", int), config=self.config), 0)
        self.assertEqual(bound, [7])


class TestResolution(Output):

    def build(self):
        app = App(copy.replace(self.config, version="9.9"))
        app.add("add", lambda x, y: None, Parameter("x", int), Parameter("y", int), summary="Add two numbers.")
        app.add("user add", lambda name: None, Parameter("name"), summary="Add a user.")
        return app

    def testNoArgumentsShowsOverview(self):
        self.assertEqual(self.build().run([]), 0)
        self.assertIn("Commands:", self.lines[-1])
        self.assertIn("user add", self.lines[-1])

    def testUnknownCommandShowsOverviewAndFails(self):
        self.assertEqual(self.build().run(["remove"]), 1)
        self.assertIn("Commands:", self.lines[-1])

    def testVersion(self):
        app = self.build()
        self.assertEqual(app.run(["--version"]), 0)
        self.assertEqual(self.lines[-1], "9.9")
        self.assertEqual(app.run(["add", "--version"]), 0)
        self.assertEqual(self.lines[-1], "9.9")

    def testCommandHelpShortcuts(self):
        app = self.build()
        self.assertEqual(app.run(["add"]), 0)
        self.assertIn("Add two numbers.", self.lines[-1])
        self.assertEqual(app.run(["user", "add", "-h"]), 0)
        self.assertIn("Add a user.", self.lines[-1])

    def testMultiSegmentCommand(self):
        names = []
        app = App(self.config)
        app.add("user add", lambda name: names.append(name), Parameter("name", kind=Kind.POSITIONAL))
        self.assertEqual(app.run(["user", "add", "ada"]), 0)
        self.assertEqual(names, ["ada"])

    def testRegistrationAfterBuildIsRejected(self):
        app = self.build()
        app.build()
        with self.assertRaises(faults.CommandRegisteredInLoopError):
            app.add("late", lambda: None)


class TestFilters(Output):

    def testGlobalThenCommandThenHandler(self):
        events = []
        app = App(self.config)
        app.use(recording(events, "A"))
        app.add("run", lambda: events.append("C"), filters=[recording(events, "B")])
        self.assertEqual(app.run(["run"]), 0)
        self.assertEqual(events, ["A-before", "B-before", "C", "B-after", "A-after"])

    def testChainIsFreshPerRun(self):
        instances = []

        class Counting(Filter):
            def __init__(self, next):
                super().__init__(next)
                instances.append(self)

        app = App(self.config)
        app.use(Counting)
        app.add("run", lambda: None)
        app.run(["run"])
        app.run(["run"])
        self.assertEqual(len(instances), 2)
        self.assertIsNot(instances[0], instances[1])


class TestServices(Output):

    def testServicesAreInjected(self):
        database = Database()
        received = []
        app = App(copy.replace(self.config, services={Database: database}))
        app.add("query", lambda db, limit: received.append((db, limit)),
                Parameter("db", Database, service=True), Parameter("limit", int, default=5))
        self.assertEqual(app.run(["query"]), 0)
        self.assertEqual(received, [(database, 5)])

    def testCallableServiceLookup(self):
        database = Database()
        received = []
        app = App(copy.replace(self.config, services=lambda type: database if type is Database else None))
        app.add("query", lambda db: received.append(db), Parameter("db", Database, service=True))
        self.assertEqual(app.run(["query"]), 0)
        self.assertEqual(received, [database])

    def testUnresolvableServiceFailsAtStartup(self):
        registry = Registry([Command("query", lambda db: None, [Parameter("db", Database, service=True)])])
        with self.assertRaises(UnresolvableServiceError):
            Dispatcher(registry, self.config)
        self.assertFalse(registry.sealed)

    def testServiceMissingFromPerRunConfigExitsOne(self):
        registry = Registry([Command("query", lambda db: None, [Parameter("db", Database, service=True)])])
        dispatcher = Dispatcher(registry, copy.replace(self.config, services={Database: Database()}))
        self.assertEqual(dispatcher.run(["query"], self.config), 1)
        self.assertEqual(len(self.errors), 1)
        self.assertIn("Service parameter 'db' of command 'query'", self.errors[0])

    def testOptionalServiceUsesDefault(self):
        received = []
        app = App(self.config)
        app.add("query", lambda db: received.append(db), Parameter("db", Database, default=None, service=True))
        self.assertEqual(app.run(["query"]), 0)
        self.assertEqual(received, [None])


class TestFancyOutput(TestCase):

    def testFancyFaultsRenderOnConsole(self):
        buffer = io.StringIO()
        errors = []
        app = App(RuntimeConfig(log_error=errors.append, fancy=True, prog="demo", signals=False))
        app.add("add", lambda x: None, Parameter("x", int))
        with mock.patch.object(faults, "console", Console(file=buffer, width=100)):
            self.assertEqual(app.run(["add", "--x", "ten"]), 1)
        self.assertEqual(errors, [])
        output = buffer.getvalue()
        self.assertIn("demo", output)
        self.assertIn("11002", output)
        self.assertIn("Argument 'x' failed to parse, provided value: ten", output)


@unittest.skipUnless(hasattr(signal, "raise_signal") and hasattr(signal, "SIGINT"), "needs signal.raise_signal")
class TestInterrupts(TestCase):

    def setUp(self):
        self.errors = []

    def config(self, timeout):
        return RuntimeConfig(log=self.errors.append, timeout=timeout)

    def testCooperativeCommandExits130BeforeTimeout(self):
        async def handler(token):
            signal.raise_signal(signal.SIGINT)
            await token.wait_async()
            token.raise_if_cancelled()

        app = App(self.config(5))
        app.add("work", handler, token="token")
        started = time.monotonic()
        self.assertEqual(app.run(["work"]), 130)
        self.assertLess(time.monotonic() - started, 4)
        self.assertEqual(self.errors, [])

    def testStubbornAsyncCommandIsAbandonedAtTimeout(self):
        async def handler():
            signal.raise_signal(signal.SIGINT)
            await asyncio.sleep(30)

        app = App(self.config(0.05))
        app.add("work", handler)
        started = time.monotonic()
        self.assertEqual(app.run(["work"]), 130)
        self.assertLess(time.monotonic() - started, 10)
        self.assertEqual(self.errors, [])

    def testStubbornSyncCommandIsAbandonedAtTimeout(self):
        @interceptor
        async def interrupt(context, token, next):
            signal.raise_signal(signal.SIGINT)
            await next(context, token)

        app = App(self.config(0.05))
        app.add("work", lambda: time.sleep(2), filters=[interrupt])
        started = time.monotonic()
        self.assertEqual(app.run(["work"]), 130)
        self.assertLess(time.monotonic() - started, 1.5)

    def testLoopBlockingAsyncCommandIsAbandonedAtTimeout(self):
        async def handler():
            signal.raise_signal(signal.SIGINT)
            time.sleep(2)
            return 0

        app = App(self.config(0.05))
        app.add("work", handler)
        started = time.monotonic()
        self.assertEqual(app.run(["work"]), 130)
        self.assertLess(time.monotonic() - started, 1.5)
        self.assertEqual(self.errors, [])

    def testCommandSwallowingCancellationIsAbandonedAtTimeout(self):
        async def handler():
            signal.raise_signal(signal.SIGINT)
            deadline = time.monotonic() + 3
            while time.monotonic() < deadline:
                try:
                    await asyncio.sleep(0.1)
                except asyncio.CancelledError:
                    pass

        app = App(self.config(0.05))
        app.add("work", handler)
        started = time.monotonic()
        self.assertEqual(app.run(["work"]), 130)
        self.assertLess(time.monotonic() - started, 1.5)
        self.assertEqual(self.errors, [])

    def testHandlersAreRestoredAfterRun(self):
        previous = signal.getsignal(signal.SIGINT)
        app = App(self.config(1))
        app.add("noop", lambda: None)
        app.run(["noop"])
        self.assertEqual(signal.getsignal(signal.SIGINT), previous)


if __name__ == "__main__":
    unittest.main()
