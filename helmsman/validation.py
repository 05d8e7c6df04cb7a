"""
Validation rules and the aggregate validator.

A Rule is a predicate plus a message template evaluated against one bound
value. validate() evaluates every rule of every parameter (never stopping at
the first failure) and raises a single ValidationError whose message lists
each failure as "The field {name} {message}." in declaration order.

Every rule except Required lets None through: absence is Required's concern.
"""
import re
from collections.abc import Sized

from .faults import ValidationError
from .utils import *


class Rule(metaclass=SpecType):
    """
    Base of validation rules.

    Subclasses define check(value) -> bool and a `template` formatted with
    their introspectable fields to produce the failure message.
    """
    template = "is invalid"

    def check(self, value, /):
        raise NotImplementedError

    @property
    def message(self):
        return self.template.format(**{name: getattr(self, name) for name in type(self).__introspectable__})

    def __call__(self, value, /):
        """
        Return the failure message for `value`, or None when it passes.

        A check that raises (a predicate choking on the value, bounds that do
        not compare with it) counts as a failure of this rule.
        """
        if value is None and not isinstance(self, Required):
            return None
        try:
            passed = self.check(value)
        except Exception:
            passed = False
        return None if passed else self.message


class Required(Rule):
    template = "is required"

    def check(self, value, /):
        if value is None:
            return False
        if isinstance(value, str | Sized):
            return len(value) > 0
        return True


class Range(Rule):
    """
    Inclusive bounds; either side may be None (open).
    """
    __introspectable__ = ("min", "max")
    __positional__ = ("min", "max")
    template = "must be between {min} and {max}"

    def __new__(cls, min=None, max=None, /):
        if min is None and max is None:
            raise ValueError(f"{cls.__typename__} requires at least one bound")
        if min is not None and max is not None and min > max:
            raise ValueError(f"{cls.__typename__} 'min' cannot be greater than 'max'")
        self = super().__new__(cls)
        self._min = min
        self._max = max
        return self

    @property
    def message(self):
        if self._min is None:
            return "must be at most %s" % self._max
        if self._max is None:
            return "must be at least %s" % self._min
        return super().message

    def check(self, value, /):
        if self._min is not None and value < self._min:
            return False
        if self._max is not None and value > self._max:
            return False
        return True


def _sanitize_length(cls, number, label, /):
    if not isinstance(number, int) or isinstance(number, bool):
        raise TypeError(f"{cls.__typename__} {label!r} must be an integer")
    if number < 0:
        raise ValueError(f"{cls.__typename__} {label!r} cannot be negative")
    return number


class Length(Rule):
    __introspectable__ = ("min", "max")
    __positional__ = ("min", "max")
    template = "must have a length between {min} and {max}"

    def __new__(cls, min, max, /):
        self = super().__new__(cls)
        self._min = _sanitize_length(cls, min, "min")
        self._max = _sanitize_length(cls, max, "max")
        if self._min > self._max:
            raise ValueError(f"{cls.__typename__} 'min' cannot be greater than 'max'")
        return self

    def check(self, value, /):
        return self._min <= len(value) <= self._max


class MinLength(Rule):
    __introspectable__ = ("length",)
    __positional__ = ("length",)
    template = "must have a length of at least {length}"

    def __new__(cls, length, /):
        self = super().__new__(cls)
        self._length = _sanitize_length(cls, length, "length")
        return self

    def check(self, value, /):
        return len(value) >= self._length


class MaxLength(Rule):
    __introspectable__ = ("length",)
    __positional__ = ("length",)
    template = "must have a length of at most {length}"

    def __new__(cls, length, /):
        self = super().__new__(cls)
        self._length = _sanitize_length(cls, length, "length")
        return self

    def check(self, value, /):
        return len(value) <= self._length


class Pattern(Rule):
    """
    The whole textual value must match the regular expression.
    """
    __introspectable__ = ("pattern",)
    __positional__ = ("pattern",)
    template = "must match the regular expression '{pattern}'"

    def __new__(cls, pattern, /):
        if not isinstance(pattern, str | re.Pattern):
            raise TypeError(f"{cls.__typename__} 'pattern' must be a string or a compiled pattern")
        self = super().__new__(cls)
        self._compiled = re.compile(pattern)
        self._pattern = self._compiled.pattern
        return self

    def check(self, value, /):
        return self._compiled.fullmatch(str(value)) is not None


class Choices(Rule):
    __introspectable__ = ("values",)
    template = "must be one of: {values}"

    def __new__(cls, *values):
        if not values:
            raise ValueError(f"{cls.__typename__} requires at least one value")
        self = super().__new__(cls)
        self._values = values
        return self

    def __replace__(self, /, **overrides):
        return type(self)(*overrides.get("values", self._values))

    @property
    def message(self):
        return self.template.format(values=", ".join(map(str, self._values)))

    def check(self, value, /):
        return value in self._values


class Predicate(Rule):
    """
    Arbitrary check: function(value) -> truthy on success.
    """
    __introspectable__ = ("function", "template")
    __positional__ = ("function", "template")

    def __new__(cls, function, template, /):
        if not callable(function):
            raise TypeError(f"{cls.__typename__} 'function' must be callable")
        if not isinstance(template, str) or not (template := template.strip()):
            raise ValueError(f"{cls.__typename__} 'template' must be a non-empty string")
        self = super().__new__(cls)
        self._function = function
        self._template = template
        return self

    @property
    def message(self):
        return self._template

    def check(self, value, /):
        return bool(self._function(value))


def failures(parameters, values, /):
    """
    Return every failure line for `values`, in parameter then rule order.
    """
    lines = []
    for parameter in parameters:
        for rule in parameter.rules:
            if (message := rule(values.get(parameter.name))) is not None:
                lines.append("The field %s %s." % (parameter.name, message))
    return lines


def validate(command, values, /):
    """
    Raise ValidationError listing every failing rule of `command` for `values`.
    """
    if lines := failures(command.parameters, values):
        raise ValidationError("\n".join(lines), command=command.name)


__all__ = (
    "Rule",
    "Required",
    "Range",
    "Length",
    "MinLength",
    "MaxLength",
    "Pattern",
    "Choices",
    "Predicate",
    "failures",
    "validate",
)
