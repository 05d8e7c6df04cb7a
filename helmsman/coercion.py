"""
Token coercion: raw strings into typed values.

Overview
- A registry of coercion functions keyed by target type. Each parameter looks
  its coercer up once (resolve()) instead of dispatching on the value.
- Scalars: str, int, float, bool, Decimal, complex, UUID, Path, datetime, date,
  time, timedelta, and any Enum (matched by member name, case-insensitively).
- Shapes: coerce_array (comma list or JSON array), coerce_object (JSON),
  coerce_nullable (literal "null" or the inner scalar).
- render(): the inverse of coercion for round-trips and help output.

Contract
- Every coercer takes a single str and returns the typed value or raises
  ValueError/TypeError. The binder turns those into ArgumentParseError with
  the literal parameter name and raw value; nothing is silently coerced.
"""
import builtins
import datetime
import decimal
import enum
import json
import re
import uuid
from collections.abc import Mapping
from pathlib import Path

_coercers = {}


def coercer(type, /):
    """
    Register the decorated function as the coercer for `type`.

    Registering a base class also covers its subclasses (see resolve()).
    """
    if not isinstance(type, builtins.type):
        raise TypeError("coercer() argument must be a type")

    def wrapper(function):
        if not callable(function):
            raise TypeError("@coercer() must be applied to a callable")
        _coercers[type] = function
        return function

    return wrapper


@coercer(str)
def _string(raw):
    return raw


@coercer(int)
def _integer(raw):
    return int(raw)


@coercer(float)
def _floating(raw):
    return float(raw)


@coercer(bool)
def _boolean(raw):
    match raw.strip().lower():
        case "true":
            return True
        case "false":
            return False
    raise ValueError(f"invalid boolean literal: {raw!r}")


@coercer(decimal.Decimal)
def _decimal(raw):
    try:
        return decimal.Decimal(raw)
    except decimal.InvalidOperation:
        raise ValueError(f"invalid decimal literal: {raw!r}") from None


@coercer(complex)
def _complex(raw):
    return complex(raw)


@coercer(uuid.UUID)
def _uuid(raw):
    return uuid.UUID(raw)


@coercer(Path)
def _path(raw):
    if not raw:
        raise ValueError("empty path")
    return Path(raw)


@coercer(datetime.datetime)
def _datetime(raw):
    return datetime.datetime.fromisoformat(raw)


@coercer(datetime.date)
def _date(raw):
    return datetime.date.fromisoformat(raw)


@coercer(datetime.time)
def _time(raw):
    return datetime.time.fromisoformat(raw)


_TIMEDELTA = re.compile(
    r"(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{2}):(?P<seconds>\d{2})(?:\.(?P<fraction>\d{1,6}))?"
)


@coercer(datetime.timedelta)
def _timedelta(raw):
    """
    [-][d.]hh:mm:ss[.ffffff], e.g. "1.02:03:04.5" or "-00:00:30".
    """
    if not (match := _TIMEDELTA.fullmatch(raw.strip())):
        raise ValueError(f"invalid duration literal: {raw!r}")
    delta = datetime.timedelta(
        days=int(match["days"] or 0),
        hours=int(match["hours"]),
        minutes=int(match["minutes"]),
        seconds=int(match["seconds"]),
        microseconds=int((match["fraction"] or "0").ljust(6, "0")),
    )
    return -delta if match["sign"] else delta


def _enumeration(type):
    members = {name.lower(): member for name, member in type.__members__.items()}

    def coerce(raw):
        try:
            return members[raw.strip().lower()]
        except KeyError:
            raise ValueError(f"{raw!r} is not a member of {type.__name__}") from None

    return coerce


def resolve(type, /):
    """
    Return the coercer for `type`.

    lookup order
    - exact registration
    - Enum subclasses (member name, case-insensitive)
    - the nearest registered base class along the MRO
    - the type itself, called on the raw string (any callable converter works)
    """
    try:
        return _coercers[type]
    except (KeyError, TypeError):
        pass
    if isinstance(type, builtins.type):
        if issubclass(type, enum.Enum):
            return _enumeration(type)
        for base in type.__mro__[1:]:
            if base in _coercers and base is not object:
                return _coercers[base]
    if not callable(type):
        raise TypeError(f"no coercer available for {type!r}")
    return type


def coerce(type, raw, /):
    return resolve(type)(raw)


def coerce_nullable(type, raw, /):
    if raw.strip().lower() == "null":
        return None
    return coerce(type, raw)


def split(raw, /):
    """
    Split on commas that are not nested inside brackets or braces.

    "a,[b,c],d" → ["a", "[b,c]", "d"]
    """
    parts = []
    depth = 0
    start = 0
    for index, char in enumerate(raw):
        if char in "[{":
            depth += 1
        elif char in "]}" and depth:
            depth -= 1
        elif char == "," and not depth:
            parts.append(raw[start:index])
            start = index + 1
    parts.append(raw[start:])
    return parts


def coerce_array(type, raw, /):
    """
    Coerce an array value.

    - "[...]" → decoded as a JSON array; string elements are coerced as tokens,
      other elements through their JSON text (so 10 → "10" → int).
    - anything else → bracket-aware comma split, each element coerced.
    """
    function = resolve(type)
    if raw.lstrip().startswith("["):
        try:
            elements = json.loads(raw)
        except json.JSONDecodeError as exception:
            raise ValueError(f"malformed JSON array: {exception}") from None
        if not isinstance(elements, list):
            raise ValueError("JSON value is not an array")
        return [function(element if isinstance(element, str) else json.dumps(element)) for element in elements]
    return [function(element) for element in split(raw)]


def coerce_object(type, raw, /):
    """
    Decode a JSON-shaped value.

    The decoded value is returned as-is for an object target, or when it
    already is an instance of the target (so a dict target takes only a JSON
    object and a list target only a JSON array); a JSON object is expanded as
    keyword arguments for any other target type (dataclasses, plain classes).
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exception:
        raise ValueError(f"malformed JSON: {exception}") from None
    if type is object or isinstance(data, type):
        return data
    if isinstance(data, Mapping) and type not in (dict, list):
        return type(**data)
    raise ValueError(f"JSON value cannot be converted to {type.__name__}")


def render(value, /):
    """
    Render a typed value back into its token form.

    - Enum → member name
    - bool → "true"/"false"
    - None → "null"
    - dates/times → ISO 8601
    - timedelta → [-][d.]hh:mm:ss[.ffffff]
    - list/tuple → comma-joined rendered elements
    - dict → JSON
    - everything else → str()
    """
    match value:
        case enum.Enum():
            return value.name
        case bool():
            return "true" if value else "false"
        case None:
            return "null"
        case datetime.datetime() | datetime.date() | datetime.time():
            return value.isoformat()
        case datetime.timedelta():
            sign = "-" if value < datetime.timedelta(0) else ""
            value = abs(value)
            hours, remainder = divmod(value.seconds, 3600)
            minutes, seconds = divmod(remainder, 60)
            text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
            if value.days:
                text = f"{value.days}.{text}"
            if value.microseconds:
                text = f"{text}.{value.microseconds:06d}"
            return sign + text
        case list() | tuple():
            return ",".join(map(render, value))
        case dict():
            return json.dumps(value)
    return str(value)


def typename(type, /):
    """
    Short type hint used in help output (enum members are listed).
    """
    if isinstance(type, builtins.type) and issubclass(type, enum.Enum):
        return "|".join(type.__members__)
    return {
        str: "string",
        datetime.datetime: "datetime",
        datetime.timedelta: "timespan",
    }.get(type, getattr(type, "__name__", "value"))


__all__ = (
    "coercer",
    "resolve",
    "coerce",
    "coerce_nullable",
    "coerce_array",
    "coerce_object",
    "split",
    "render",
    "typename",
)
