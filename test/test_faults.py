"""
Fault taxonomy and rendering tests.

Conventions
- Test method names follow CamelCase per project convention.
"""
import copy
import io
import sys
import unittest
from types import ModuleType
from unittest import TestCase

from rich.console import Console

from helmsman import (
    ArgumentNameNotFoundError,
    ArgumentParseError,
    CommandException,
    FaultCode,
    OperationCancelledError,
    RequiredArgumentMissingError,
    UnhandledExecutionError,
    ValidationError,
)


def render(renderable):
    buffer = io.StringIO()
    Console(file=buffer, width=100).print(renderable)
    return buffer.getvalue()


class TestFaults(TestCase):

    def setUp(self):
        self.addCleanup(sys.modules.__setitem__, "__main__", sys.modules["__main__"])
        sys.modules["__main__"] = ModuleType("__main__")

    def testMessages(self):
        self.assertEqual(str(ArgumentNameNotFoundError("y")), "Argument 'y' is not recognized.")
        self.assertEqual(str(ArgumentParseError("x", "")), "Argument 'x' failed to parse, provided value: ")
        self.assertEqual(str(RequiredArgumentMissingError("y")), "Required argument 'y' was not specified.")
        self.assertEqual(str(OperationCancelledError()), "The operation was cancelled.")

    def testOptionsAreReadOnly(self):
        fault = ArgumentParseError("x", "ten")
        self.assertEqual(fault.options["code"], FaultCode.ARGUMENT_PARSE)
        self.assertEqual(fault.options["value"], "ten")
        with self.assertRaises(TypeError):
            fault.options["value"] = "eleven"

    def testEveryFaultIsACommandException(self):
        for fault in (ArgumentNameNotFoundError("y"), ValidationError("x"), OperationCancelledError()):
            with self.subTest(fault=type(fault)):
                self.assertIsInstance(fault, CommandException)

    def testReplaceMergesOptions(self):
        fault = ArgumentNameNotFoundError("y", hint="did you mean '--y'?")
        changed = copy.replace(fault, fancy=True, prog="demo")
        self.assertIs(type(changed), ArgumentNameNotFoundError)
        self.assertEqual(str(changed), str(fault))
        self.assertTrue(changed.options["fancy"])
        self.assertEqual(changed.options["token"], "y")
        self.assertFalse(fault.options["fancy"])

    def testRichRendering(self):
        fault = ArgumentNameNotFoundError("y", hint="did you mean '--y'?", prog="demo")
        output = render(fault)
        self.assertIn("[ demo — 11001 | Unknown Argument ]", output)
        self.assertIn("Argument 'y' is not recognized.", output)
        self.assertIn("did you mean '--y'?", output)

    def testCodesCanBeRelabelledByHost(self):
        sys.modules["__main__"].__codes__ = {FaultCode.ARGUMENT_NAME_NOT_FOUND: "E-UNKNOWN"}
        self.assertEqual(FaultCode.ARGUMENT_NAME_NOT_FOUND.normalize(), "E-UNKNOWN")
        self.assertEqual(FaultCode.VALIDATION.normalize(), "12001")

    def testValidationFailures(self):
        fault = ValidationError("The field a is required.\nThe field b must be between 1 and 2.")
        self.assertEqual(len(fault.failures), 2)

    def testUnhandledExecutionCarriesDiagnostic(self):
        exception = RuntimeError("boom")
        fault = UnhandledExecutionError(exception, "Traceback...\nRuntimeError: boom\n")
        self.assertEqual(str(fault), "Traceback...\nRuntimeError: boom")
        self.assertIs(fault.options["exception"], exception)


if __name__ == "__main__":
    unittest.main()
