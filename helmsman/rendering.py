"""
Help, overview and version text.

All renderers return plain, deterministic strings (no styling, no terminal
width detection) so hosts can snapshot them; the dispatcher hands them to the
configured log sink.

Help layout

    Usage: [prog] <name> [arguments...] [options...] [-h|--help] [--version]

    <summary>

    Arguments:
      [0] <source>   <path>      File to read. (required)

    Options:
      -c, --count    <int>       How many times. [default=1]

The program name comes from the `prog` argument, else `__main__.__prog__`,
and is omitted when neither is set.
"""
import importlib.metadata

from . import coercion
from .arguments import Kind
from .utils import *


def _prog(prog):
    return coalesce(prog, getattr(__import__("__main__"), "__prog__", None))


def _usage(*parts):
    return "Usage: " + " ".join(part for part in parts if part)


def hint(parameter, /):
    """
    Type hint shown next to a parameter ("" for flags).
    """
    name = coercion.typename(parameter.type)
    match parameter.kind:
        case Kind.FLAG:
            return ""
        case Kind.NULLABLE:
            return "<%s?>" % name
        case Kind.ARRAY:
            return "<%s[]>" % name
        case Kind.VARIADIC:
            return "<%s>..." % name
        case Kind.OBJECT:
            return "<json>"
    return "<%s>" % name


def _marker(parameter):
    if parameter.required:
        return "(required)"
    if parameter.kind is Kind.FLAG and not parameter.default:
        return ""
    if parameter.kind is Kind.VARIADIC and not parameter.default:
        return ""
    return "[default=%s]" % coercion.render(parameter.default)


def _table(rows):
    width = max((len(left) for left, *_ in rows), default=0)
    types = max((len(middle) for _, middle, _ in rows), default=0)
    lines = []
    for left, middle, right in rows:
        line = "  %s  %s  %s" % (left.ljust(width), middle.ljust(types), right)
        lines.append(line.rstrip())
    return lines


def render_help(command, /, prog=Unset):
    """
    Render the help text of one command.
    """
    positionals = command.positionals
    options = [parameter for parameter in command.parameters if not parameter.service and not parameter.positional]

    lines = [_usage(
        _prog(prog),
        command.name,
        "[arguments...]" if positionals else "",
        "[options...]" if options else "",
        "[-h|--help] [--version]",
    )]
    if command.summary:
        lines += ["", command.summary]

    rows = []
    for index, parameter in enumerate(positionals):
        rows.append(("[%d] %s" % (index, parameter.name), hint(parameter), parameter.descr or ""))
    for parameter in options:
        rows.append((", ".join(reversed(parameter.spellings)), hint(parameter), parameter.descr or ""))

    rows = [
        (left, middle, " ".join(part for part in (descr, _marker(parameter)) if part))
        for (left, middle, descr), parameter in zip(rows, (*positionals, *options))
    ]
    table = _table(rows)

    if positionals:
        lines += ["", "Arguments:", *table[:len(positionals)]]
    if options:
        lines += ["", "Options:", *table[len(positionals):]]

    return "\n".join(lines)


def render_overview(commands, /, prog=Unset):
    """
    Render the top-level listing of every named command.
    """
    lines = [_usage(_prog(prog), "[command]", "[-h|--help] [--version]")]

    commands = [command for command in commands if command.name]
    if commands:
        width = max(len(command.name) for command in commands)
        lines += ["", "Commands:"]
        for command in commands:
            lines.append(("  %s  %s" % (command.name.ljust(width), command.summary or "")).rstrip())

    return "\n".join(lines)


def render_version(config=Unset, /):
    """
    Resolve the version text.

    fallback chain
    - config.version
    - installed metadata of config.distribution
    - __main__.__version__
    - "1.0.0"
    """
    if config and config.version:
        return config.version
    if config and config.distribution:
        try:
            return importlib.metadata.version(config.distribution)
        except importlib.metadata.PackageNotFoundError:
            pass
    if version := getattr(__import__("__main__"), "__version__", None):
        return str(version)
    return "1.0.0"


__all__ = (
    "hint",
    "render_help",
    "render_overview",
    "render_version",
)
