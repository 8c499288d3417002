"""
Helmsman faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues
  (errors and warnings). Codes are grouped by domain to keep copy consistent
  and make logs/searches predictable.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves as a short, blank-line bracketed diagnostic.
- trigger(): central entry point to surface any fault (respecting shell/colorful/fancy).

Integration
- Parsing code raises faults without runtime context; the owning Command catches
  them and calls its trigger(), which merges tool/shell/colorful/fancy in.
- In non-shell mode, exceptions are raised; in shell mode, they are rendered via
  rich on the error stream and the process exits with status 1.
"""
import inspect
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • NO_MATCHING_COMMAND, SUBCOMMAND_NOT_FOUND, SUBCOMMAND_NOT_EXECUTABLE
    - options (1111x)
      • UNKNOWN_OPTION, MISSING_OPTION_ARGUMENT, OPTION_COERCION
    - positionals (1112x)
      • MISSING_ARGUMENT, VARIADIC_NOT_LAST

    rationale
    - codes are discoverable (searchable in logs and docs) and normalized to a string
      via normalize() so hosts can remap them if desired.
    """
    # --- routing (11xxx) ---
    SUBCOMMAND_NOT_FOUND        = 11101
    SUBCOMMAND_NOT_EXECUTABLE   = 11102

    # --- options (11xxx) ---
    UNKNOWN_OPTION              = 11111
    MISSING_OPTION_ARGUMENT     = 11112
    OPTION_COERCION             = 11113

    # --- positionals (11xxx) ---
    MISSING_ARGUMENT            = 11121
    VARIADIC_NOT_LAST           = 11122

    # --- warnings (12xxx) ---
    NO_MATCHING_COMMAND         = 12101

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, kind, styles):
    """
    Build the rich renderable shared by errors and warnings.

    Layout (plain mode)

        <blank>
          error: <message>
          → <hint>
        <blank>
    """
    options = fault.options

    def styler(style):
        return styles[style] if options.get("colorful", False) else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not options.get("colorful", False):
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    message = Text.assemble("  ", text(kind, styler("label")), ": ", text(fault.message, styler("message")))
    renders = [message]
    if hint := options.get("hint"):
        renders.append(Text.assemble("  ", text("→ ", styler("hint-arrow")), text(hint, styler("hint"))))

    if options.get("fancy", False):
        main = __import__("__main__")
        tool = options.get("tool")
        prog = getattr(main, "__prog__", tool.root.name if tool is not None else "")
        code = options.get("code")
        header = Text.assemble(
            "[ ",
            text(prog, styler("prog-name")),
            " — ",
            text(code.normalize() if code is not None else "", styler("code")),
            " | ",
            text(str(options.get("title", kind)).title(), styler("title")),
            " ]",
        )
        return Panel(Group(*renders), title=header, title_align="left")

    return Group(Text(""), *renders, Text(""))


class CommandException(Exception):
    """
    Base class for every fatal parsing/dispatch fault.

    Carries a lowercased, human readable message plus free-form options
    (title, code, hint, and runtime context such as tool/shell/colorful).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "title": "bold #FF4DA6",  # friendly pinky title
            "label": "bold #FF4DA6",
            "message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(__import__("__main__"), "__styles__", {}))
        return _render(self, "error", styles)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class MissingOptionArgumentError(CommandException): ...
class UnknownOptionError(CommandException): ...
class OptionCoercionError(CommandException): ...
class MissingArgumentError(CommandException): ...
class VariadicNotLastError(CommandException): ...
class SubcommandNotFoundError(CommandException): ...
class SubcommandNotExecutableError(CommandException): ...


class CommandWarning(ABC, Warning):
    """
    Base class for non-fatal notifications.

    In shell mode the warning is printed on the error stream; otherwise it is
    emitted through the warnings module so callers can filter or record it.
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",  # amber fault code for warnings
            "title": "bold #FFC2E0",
            "label": "bold #FFB400",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        } | getattr(__import__("__main__"), "__styles__", {}))
        return _render(self, "warning", styles)

    def __trigger__(self):
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class NoMatchingCommandWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, exceptions are raised
      and warnings go through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "CommandException",
    "MissingOptionArgumentError",
    "UnknownOptionError",
    "OptionCoercionError",
    "MissingArgumentError",
    "VariadicNotLastError",
    "SubcommandNotFoundError",
    "SubcommandNotExecutableError",
    "CommandWarning",
    "NoMatchingCommandWarning",
    "FaultCode",
    "trigger",
)
