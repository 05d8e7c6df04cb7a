r"""
Helmsman parameter specifications.

Overview
- Kind: the binding shape of a parameter (flag, scalar, nullable, array,
  object, positional, variadic).
- Parameter: immutable descriptor of one handler parameter: its name, CLI
  spelling, optional one-letter alias, target type, kind, default, validation
  rules, and whether it comes from the service lookup instead of the tokens.

Metadata (sanitized on construction)
- name: Python identifier; the CLI spelling is "--" + name with "_" → "-".
- alias: Unset | single letter (a leading "-" is tolerated); spelled "-x".
- type: callable target type (element type for array/variadic kinds).
- kind: Unset → FLAG when type is bool, otherwise SCALAR.
- default: Unset means "no default". Flags fall back to False and variadics
  to an empty list, so neither is ever required.
- rules: iterable of validation Rule instances, kept in order.
- descr: Unset | str (short help), non-empty when provided.
- service: bool; service parameters are never read from tokens.

Every parameter resolves its coercion function once, at construction, from
the coercion registry (see coerce()).
"""
import copy
import enum
import functools

from . import coercion
from .utils import *
from .validation import Rule


class Kind(enum.Enum):
    """
    Binding shape of a parameter.

    - FLAG: presence-only switch, optionally followed by "true"/"false".
    - SCALAR: named option with one value.
    - NULLABLE: named option with one value or the literal "null".
    - ARRAY: named option with a comma-separated or JSON array value.
    - OBJECT: named option with a JSON value.
    - POSITIONAL: bare token matched by declaration order.
    - VARIADIC: trailing positional consuming every remaining token.
    """
    FLAG = "flag"
    SCALAR = "scalar"
    NULLABLE = "nullable"
    ARRAY = "array"
    OBJECT = "object"
    POSITIONAL = "positional"
    VARIADIC = "variadic"


def _sanitize(cls, metadata, /):
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not name.isidentifier():
        raise ValueError(f"{cls.__typename__} 'name' must be a valid identifier, got {name!r}")

    if not callable(metadata["type"]):
        raise TypeError(f"{cls.__typename__} 'type' must be callable")

    if not isinstance(kind := metadata["kind"], Kind | Unset):
        raise TypeError(f"{cls.__typename__} 'kind' must be a Kind member")
    metadata["kind"] = kind = coalesce(kind, Kind.FLAG if metadata["type"] is bool else Kind.SCALAR)
    if kind is Kind.FLAG and metadata["type"] is not bool:
        raise TypeError(f"{cls.__typename__} {name!r} is a flag and its 'type' must be bool")

    if not isinstance(alias := metadata["alias"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'alias' must be a string")
    elif isinstance(alias, str):
        alias = alias.strip().removeprefix("-")
        if len(alias) != 1 or not alias.isalpha():
            raise ValueError(f"{cls.__typename__} 'alias' must be a single letter, got {metadata['alias']!r}")
    metadata["alias"] = alias

    if metadata["default"] is Unset:
        if kind is Kind.FLAG:
            metadata["default"] = False
        elif kind is Kind.VARIADIC:
            metadata["default"] = []

    rules = tuple(metadata["rules"])
    for rule in rules:
        if not isinstance(rule, Rule):
            raise TypeError(f"{cls.__typename__} 'rules' must only contain Rule instances, got {rule!r}")
    metadata["rules"] = rules

    if not isinstance(descr := metadata["descr"], str | Unset | None):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


def _coercer(kind, type):
    match kind:
        case Kind.FLAG:
            return coercion.resolve(bool)
        case Kind.NULLABLE:
            return functools.partial(coercion.coerce_nullable, type)
        case Kind.ARRAY:
            return functools.partial(coercion.coerce_array, type)
        case Kind.OBJECT:
            return functools.partial(coercion.coerce_object, type)
    return coercion.resolve(type)


class Parameter(metaclass=SpecType):
    """
    Immutable descriptor of one handler parameter.

    Properties
    - The names listed in __introspectable__ are read-only attributes mirroring
      the sanitized metadata; copy.replace(parameter, field=...) builds a
      re-sanitized copy.
    - required: True when there is no default and the parameter is not a flag.
    - spelling/spellings: the CLI forms that open this parameter.
    """
    __introspectable__ = (
        "name",
        "type",
        "kind",
        "alias",
        "default",
        "rules",
        "descr",
        "service",
    )
    __positional__ = ("name",)

    def __new__(
            cls,
            name,
            /,
            type=str,
            kind=Unset,
            alias=Unset,
            default=Unset,
            rules=(),
            descr=Unset,
            *,
            service=False
    ):
        metadata = {
            "name": name,
            "type": type,
            "kind": kind,
            "alias": alias,
            "default": default,
            "rules": rules,
            "descr": descr,
            "service": bool(service),
        }
        _sanitize(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._coerce = _coercer(self._kind, self._type)
        return self

    @property
    def required(self):
        return self._default is Unset and self._kind is not Kind.FLAG

    @property
    def positional(self):
        """
        True for parameters bound from bare tokens (positional and variadic).
        """
        return self._kind in (Kind.POSITIONAL, Kind.VARIADIC)

    @property
    def spelling(self):
        return "--" + self._name.replace("_", "-")

    @property
    def spellings(self):
        """
        Every CLI form opening this parameter: the long spelling, then "-x".
        """
        if self._alias:
            return self.spelling, "-" + self._alias
        return self.spelling,

    def fallback(self):
        """
        Return a fresh copy of the default so mutable defaults never leak
        between runs.
        """
        return copy.deepcopy(self._default)

    def coerce(self, raw, /):
        """
        Convert one raw token into this parameter's typed value.

        Raises ValueError/TypeError (or whatever the target type raises) on
        malformed input; the binder reports those as ArgumentParseError.
        """
        return self._coerce(raw)


__all__ = (
    "Kind",
    "Parameter",
)
