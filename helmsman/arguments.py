r"""
Helmsman argument specifications.

Overview
- Specs
  • Option: one declared flag built from a declarative flag string such as
    "-p, --port <number>", "-c, --cheese [type]" or "--no-color".
  • Arg: one declared positional parameter built from "<name>", "[name]" or
    "<name...>" / "[name...]" (variadic).

- Kinds
  • OptionKind classifies an Option by how it takes its value: FLAG (boolean),
    NEGATION (--no-* boolean), REQUIRED (<value>) or OPTIONAL ([value]).

- Introspection & representation
  • Both specs are immutable after construction; fields are exposed as read-only
    properties via IntrospectableType (see utils) which also provides stable
    __repr__/__rich_repr__ implementations.

Flag grammar
- Forms are separated by commas, spaces or pipes: r"[, |]+".
- short: the first form starting with a single dash ("-p").
- long: the first form starting with a double dash ("--port"); mandatory.
- "<...>" anywhere marks a required value, "[...]" an optional one.
- The canonical name strips "--" and an optional "no-" prefix, then converts
  dash-case to camelCase ("--dry-run" -> "dryRun", "--no-color" -> "color").

Quick example:
    >>> option = Option("-p, --port <number>", "port to listen on")
    >>> option.name, option.alias, option.kind
    ('port', 'p', <OptionKind.REQUIRED: 3>)
    >>> Arg("[files...]").variadic
    True
"""
import re
from enum import IntEnum

from rich.text import Text

from .utils import *


class OptionKind(IntEnum):
    """
    How an option takes its value.

    - FLAG: presence-only boolean, resolves to True (or its default).
    - NEGATION: "--no-*" boolean, starts True and resolves to False.
    - REQUIRED: the next token is mandatory and becomes the value.
    - OPTIONAL: the next token becomes the value only when it does not look like an option.
    """
    FLAG = 1
    NEGATION = 2
    REQUIRED = 3
    OPTIONAL = 4


class Option(metaclass=IntrospectableType):
    """
    Declared flag specification.

    Option is built once, at registration time, from a declarative flag string
    and never changes afterwards. The owning Command keeps the resolved value in
    its option map under Option.name.

    Properties
    - flags: raw flag string as declared.
    - short: single-dash form or None.
    - long: double-dash form (always present).
    - required / optional: value arity markers (mutually exclusive).
    - negate: True when the long form starts with "--no-".
    - alias: short form without its dash, or None.
    - name: canonical camelCase name.
    - descr: help description or None.
    - kind: OptionKind derived from the markers above.
    """

    __introspectable__ = (
        "flags",
        "short",
        "long",
        "required",
        "optional",
        "negate",
        "alias",
        "name",
        "descr",
        "kind",
    )
    __displayable__ = (
        "flags",
        "name",
        "kind",
    )

    def __init__(self, flags, descr=Unset, /):
        """
        Parse a declarative flag string.

        Parameters
        - flags: str
          e.g. "-p, --port <number>", "-V --version", "--no-sauce".
        - descr: Unset | str | Text
          Short description for help. If Unset, becomes None.

        Raises
        - TypeError: when flags/descr have the wrong type.
        - ValueError: when flags is empty, has no long form, or declares both
          a required and an optional value.
        """
        if not isinstance(flags, str):
            raise TypeError(f"{type(self).__typename__} 'flags' must be a string")
        elif not (flags := flags.strip()):
            raise ValueError(f"{type(self).__typename__} 'flags' cannot be empty")

        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{type(self).__typename__} 'descr' must be a string")

        forms = re.split(r"[, |]+", flags)
        short = next((form for form in forms if form.startswith("-") and not form.startswith("--")), None)
        long = next((form for form in forms if form.startswith("--")), None)

        if not long:
            raise ValueError(f"{type(self).__typename__} {flags!r} must declare a long form (--name)")

        required = "<" in flags
        optional = "[" in flags
        if required and optional:
            raise ValueError(f"{type(self).__typename__} {flags!r} cannot take both a required and an optional value")

        self._flags = flags
        self._short = short
        self._long = long
        self._required = required
        self._optional = optional
        self._negate = long.startswith("--no-")
        self._alias = short[1:] if short else None
        self._name = camelize(re.sub(r"^--(no-)?", "", long))
        self._descr = coalesce(descr)

        if self._negate:
            self._kind = OptionKind.NEGATION
        elif required:
            self._kind = OptionKind.REQUIRED
        elif optional:
            self._kind = OptionKind.OPTIONAL
        else:
            self._kind = OptionKind.FLAG

    def matches(self, token, /):
        """
        Return True when token is exactly the short or the long form.
        """
        return token is not None and token in (self._short, self._long)


class Arg(metaclass=IntrospectableType):
    """
    Declared positional parameter.

    Properties
    - name: parameter name without brackets/ellipsis ("" for unbracketed tokens).
    - required: declared with "<...>".
    - variadic: the name ended with "..." (absorbs every remaining positional).
    """

    __introspectable__ = (
        "name",
        "required",
        "variadic",
    )

    def __init__(self, token, /):
        if not isinstance(token, str):
            raise TypeError(f"{type(self).__typename__} 'token' must be a string")

        name = ""
        required = False
        match token[:1]:
            case "<":
                required = True
                name = token[1:-1]
            case "[":
                name = token[1:-1]

        variadic = len(name) > 3 and name.endswith("...")
        if variadic:
            name = name[:-3]

        self._name = name
        self._required = required
        self._variadic = variadic

    def human(self):
        """
        Render the parameter as it appears in usage lines ("<name...>", "[name]").
        """
        label = self._name + ("..." if self._variadic else "")
        return f"<{label}>" if self._required else f"[{label}]"

    @staticmethod
    def parse_all(tokens, /):
        """
        Build the Args of a declarative parameter list, skipping unbracketed tokens.

        Accepts a string ("<src> [dst...]") or an iterable of tokens.
        """
        if isinstance(tokens, str):
            tokens = tokens.split()
        return [arg for arg in map(Arg, tokens) if arg.name]


__all__ = (
    "OptionKind",
    "Option",
    "Arg",
)
