"""
Command Resolver & Templater

Turns an incoming message into a process argument vector:

1. Look the message address up in the configured command table
2. Replace every `$i` placeholder with a rendering of argument `i`
3. Split the result with POSIX shell word rules (no shell is ever run)

Renderings are double-quoted so that argument content stays a single
word after splitting. Nil and Infinity render as the bare words `null`
and `inf`; Blob, Midi and Array arguments are left unsubstituted.

Example:
    template: 'say $0 --rate $1'
    args:     [String("hello world"), Float32(1.5)]
    result:   ['say', 'hello world', '--rate', '1.5']
"""

import decimal
import logging
import math
import re
import shlex
import struct
from typing import Dict, List, Mapping, Optional, Sequence

from .errors import TemplateParseError, UnknownCommandError
from .model import (
    UNSUPPORTED_ARG_TYPES,
    Bool, Char, Color, Float32, Float64, Infinity, Int32, Int64, Message,
    Nil, OscArg, ResolvedCommand, String, TimeTag,
)

logger = logging.getLogger(__name__)

# `$` followed by the whole digit run, so `$1` never matches inside `$10`
PLACEHOLDER = re.compile(r"\$(\d+)")


# =============================================================================
# RENDERING
# =============================================================================

def quote(text: str) -> str:
    """Wrap text in double quotes, escaping the characters shlex unescapes."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_float(value: float, single_precision: bool = False) -> str:
    """
    Shortest round-trip digits for a float, written out without an
    exponent; integral values have no fraction.

    Single-precision values are shortened to the fewest digits that still
    read back as the same 32-bit float, so 0.1f renders as `0.1` and 1e30f
    as a 1 followed by thirty zeros.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return _positional(_shortest_digits(value, single_precision))


def _shortest_digits(value: float, single_precision: bool) -> str:
    if single_precision:
        for precision in range(1, 10):
            text = f"{value:.{precision}g}"
            if struct.unpack(">f", struct.pack(">f", float(text)))[0] == value:
                return text
    return repr(value)


def _positional(text: str) -> str:
    digits = format(decimal.Decimal(text), "f")
    if "." in digits:
        digits = digits.rstrip("0").rstrip(".")
    return digits


def render_arg(arg: OscArg) -> Optional[str]:
    """
    Replacement text for one argument.

    Returns:
        The text to substitute, or None for kinds that are not substitutable
    """
    if isinstance(arg, (Int32, Int64)):
        return quote(str(arg.value))
    if isinstance(arg, Float32):
        return quote(format_float(arg.value, single_precision=True))
    if isinstance(arg, Float64):
        return quote(format_float(arg.value))
    if isinstance(arg, (String, Char)):
        return quote(arg.value)
    if isinstance(arg, Bool):
        return quote("true" if arg.value else "false")
    if isinstance(arg, TimeTag):
        return quote(f"{arg.seconds}.{arg.fractional}")
    if isinstance(arg, Color):
        return quote(f"rgba({arg.red}, {arg.green}, {arg.blue}, {arg.alpha})")
    if isinstance(arg, Nil):
        return "null"
    if isinstance(arg, Infinity):
        return "inf"
    return None


# =============================================================================
# SUBSTITUTION AND SPLITTING
# =============================================================================

def substitute(template: str, args: Sequence[OscArg]) -> str:
    """
    Replace every `$i` with the rendering of args[i].

    Placeholders beyond the argument list, and those naming an unsupported
    argument, are left as they are. Substituted text is never rescanned.
    """
    replacements: Dict[str, str] = {}
    for index, arg in enumerate(args):
        text = render_arg(arg)
        if text is None:
            if isinstance(arg, UNSUPPORTED_ARG_TYPES):
                logger.warning(f"Not replacing ${index}: {type(arg).__name__} arguments are unsupported")
            else:
                logger.warning(f"Not replacing ${index}: unknown argument {arg!r}")
            continue
        replacements[str(index)] = text

    if not replacements:
        return template
    return PLACEHOLDER.sub(lambda m: replacements.get(m.group(1), m.group(0)), template)


def tokenize(address: str, command: str) -> List[str]:
    """
    Split a substituted template into words.

    Raises:
        TemplateParseError: On unbalanced quotes or a trailing escape, or
            when nothing but whitespace is left
    """
    try:
        tokens = shlex.split(command)
    except ValueError as exc:
        raise TemplateParseError(address, f"failed to split {command!r}: {exc}") from exc
    if not tokens:
        raise TemplateParseError(address, "command is empty after replacement")
    return tokens


def resolve_command(commands: Mapping[str, str], message: Message) -> ResolvedCommand:
    """
    Resolve a message against the command table.

    Args:
        commands: OSC address -> command template
        message: Incoming message

    Returns:
        The argument vector to execute

    Raises:
        UnknownCommandError: If the address is not configured
        TemplateParseError: If the substituted template cannot be split
    """
    template = commands.get(message.addr)
    if template is None:
        raise UnknownCommandError(message.addr)

    command = substitute(template, message.args)
    return ResolvedCommand(tuple(tokenize(message.addr, command)))
