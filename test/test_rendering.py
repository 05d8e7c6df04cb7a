"""
Help, overview and version rendering tests (snapshot strings).

Conventions
- Test method names follow CamelCase per project convention.
- __main__ is swapped for a blank module so host attributes never leak in.
"""
import enum
import importlib.metadata
import sys
import unittest
from types import ModuleType
from unittest import TestCase

from helmsman import Command, Kind, Parameter, RuntimeConfig, hint, render_help, render_overview, render_version


class Mode(enum.Enum):
    FAST = 1
    SAFE = 2


def greet(name, count, shout):
    """Say hello.

    Prints the greeting `count` times.
    """


def add(x, y):
    """Add two numbers."""


def create(name):
    """Add a user."""


GREET = Command("greet", greet, [
    Parameter("name", kind=Kind.POSITIONAL, descr="Who to greet."),
    Parameter("count", int, alias="c", default=1, descr="How many times."),
    Parameter("shout", bool, descr="Upper-case output."),
])


class TestRendering(TestCase):

    def setUp(self):
        self.addCleanup(sys.modules.__setitem__, "__main__", sys.modules["__main__"])
        sys.modules["__main__"] = ModuleType("__main__")

    def testHelpSnapshot(self):
        self.assertEqual(render_help(GREET, "demo"), "\n".join([
            "Usage: demo greet [arguments...] [options...] [-h|--help] [--version]",
            "",
            "Say hello.",
            "",
            "Arguments:",
            "  [0] name     <string>  Who to greet. (required)",
            "",
            "Options:",
            "  -c, --count  <int>     How many times. [default=1]",
            "  --shout                Upper-case output.",
        ]))

    def testHelpWithoutProgOrSummary(self):
        command = Command("add", lambda x, y: None, [Parameter("x", int), Parameter("y", int, default=2)])
        self.assertEqual(render_help(command), "\n".join([
            "Usage: add [options...] [-h|--help] [--version]",
            "",
            "Options:",
            "  --x  <int>  (required)",
            "  --y  <int>  [default=2]",
        ]))

    def testProgFallsBackToMainAttribute(self):
        sys.modules["__main__"].__prog__ = "tool"
        self.assertTrue(render_help(GREET).startswith("Usage: tool greet "))

    def testServiceParametersAreHidden(self):
        command = Command("x", add, [Parameter("db", object, service=True)])
        self.assertEqual(render_help(command), "Usage: x [-h|--help] [--version]\n\nAdd two numbers.")

    def testTypeHints(self):
        self.assertEqual(hint(Parameter("ids", int, Kind.ARRAY)), "<int[]>")
        self.assertEqual(hint(Parameter("limit", int, Kind.NULLABLE)), "<int?>")
        self.assertEqual(hint(Parameter("meta", dict, Kind.OBJECT)), "<json>")
        self.assertEqual(hint(Parameter("rest", kind=Kind.VARIADIC)), "<string>...")
        self.assertEqual(hint(Parameter("mode", Mode)), "<FAST|SAFE>")
        self.assertEqual(hint(Parameter("verbose", bool)), "")

    def testOverviewSnapshot(self):
        commands = [Command("", add), Command("add", add), Command("user add", create)]
        self.assertEqual(render_overview(commands, "demo"), "\n".join([
            "Usage: demo [command] [-h|--help] [--version]",
            "",
            "Commands:",
            "  add       Add two numbers.",
            "  user add  Add a user.",
        ]))

    def testVersionFallbackChain(self):
        self.assertEqual(render_version(RuntimeConfig(version="2.0")), "2.0")
        self.assertEqual(render_version(RuntimeConfig(distribution="rich")), importlib.metadata.version("rich"))
        self.assertEqual(render_version(RuntimeConfig(distribution="helmsman-no-such-distribution")), "1.0.0")
        sys.modules["__main__"].__version__ = "3.1"
        self.assertEqual(render_version(RuntimeConfig()), "3.1")
        self.assertEqual(render_version(), "3.1")

    def testHelpIsDeterministic(self):
        self.assertEqual(render_help(GREET), render_help(GREET))


if __name__ == "__main__":
    unittest.main()
