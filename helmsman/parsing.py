"""
Helmsman token pipeline: normalize, classify and bind.

Stages
- normalize(tokens, options)
  Rewrites a raw argument list into a canonical token stream: clustered short
  flags ("-abc") are expanded, "key=value" is split at the first "=", and the
  literal terminator ("--") passes everything after it through verbatim.

- classify(tokens, options) -> ParseResult
  Walks the normalized stream and sorts each token into a recognized option
  resolution, an unknown option-like token, or a positional argument.

- scan(tokens, options) -> ParseResult
  normalize() then classify(), remembering which raw token every normalized
  token came from so ParseResult.tail() hands a routed subcommand its tokens
  exactly as given (the subcommand normalizes them with its own options).

- bind(arguments, args, command)
  Maps positional tokens onto declared Args by position, packs the variadic
  tail, and appends the invoking command as the final handler argument.

All stages are pure with respect to the commands: faults are raised
without runtime context and the owning Command decides how to surface them.
"""
import logging
from collections import Counter
from typing import NamedTuple

from .faults import FaultCode, MissingArgumentError, MissingOptionArgumentError, VariadicNotLastError

logger = logging.getLogger(__name__)

LITERAL = "--"


def _lookup(options, token):
    """
    Return the last declared option matching token (later registrations win).
    """
    for option in reversed(options):
        if option.matches(token):
            return option
    return None


def _expand(tokens, options):
    """
    Normalize tokens into (token, origin) pairs, origin being the index of the
    raw token each normalized token was produced from.
    """
    pairs = []
    pending = None

    for index, token in enumerate(tokens):
        if token == LITERAL:
            pairs.extend((rest, origin) for origin, rest in enumerate(tokens[index:], index))
            break

        if pending is not None and pending.required:
            pairs.append((token, index))
            pending = None
        elif "=" in token:
            flag, _, value = token.partition("=")
            pairs.extend(((flag, index), (value, index)))
        elif len(token) > 2 and token[0] == "-" and "-" not in token[1:]:
            pairs.extend(("-" + char, index) for char in token[1:])
        else:
            pairs.append((token, index))
            pending = _lookup(options, token)

    return pairs


def normalize(tokens, options=(), /):
    """
    Produce the canonical token sequence for a raw argument list.

    Rules, applied left to right with one token of look-behind:
    1. "--" appends itself and every remaining token unchanged, then stops.
    2. a token following an option that requires a value is kept untouched.
    3. a token containing "=" is split in two at the first "=".
    4. "-" followed by two or more non-dash characters expands into one
       "-<c>" token per character.
    5. anything else passes through; when it names an option (short or long
       form), that option becomes the look-behind for rule 2.
    """
    return [token for token, _ in _expand(list(tokens), options)]


class ParseResult(NamedTuple):
    """
    Outcome of classify() or scan().

    Fields
    - args: positional tokens, in order.
    - unknown: unrecognized option tokens and their putative values, in order.
    - resolved: (Option, value | None) pairs in the order they were seen.
    - tokens: every token not claimed by a recognized option (terminator included),
      in order.
    - head: index in tokens of the first positional, or -1.
    - positions: index in the classified sequence of every entry of tokens.
    - raw: the raw tokens scan() normalized (empty after a bare classify()).
    - origins: for every classified token, the index of its raw token.
    """
    args: list
    unknown: list
    resolved: list
    tokens: list
    head: int
    positions: tuple = ()
    raw: tuple = ()
    origins: tuple = ()

    def remainder(self, routed=True):
        """
        Return the unclaimed tokens in their raw form, in order.

        A raw token is restored as given when none of its normalized parts was
        claimed; otherwise only its unclaimed parts are kept. With routed, the
        first positional (the routed command name) is dropped. This is what a
        routed subcommand normalizes again with its own options.
        """
        skip = self.head if routed else -1
        if not self.origins:
            return [token for index, token in enumerate(self.tokens) if index != skip]

        parts = {}
        for index, position in enumerate(self.positions):
            parts.setdefault(self.origins[position], []).append(index)
        sizes = Counter(self.origins)

        remainder = []
        for origin, indexes in parts.items():
            kept = [index for index in indexes if index != skip]
            if len(kept) == sizes[origin]:
                remainder.append(self.raw[origin])
            else:
                remainder.extend(self.tokens[index] for index in kept)
        return remainder

    def tail(self):
        """
        Return the unclaimed tokens without the first positional (the routed command name).
        """
        return self.remainder(routed=True)


def classify(tokens, options=(), /):
    """
    Sort normalized tokens into option resolutions, unknown tokens and positionals.

    behavior
    - "--" switches to pass-through: every later token is positional.
    - a token naming a declared option:
      • required value: the next token is consumed; when there is none,
        MissingOptionArgumentError is raised.
      • optional value: the next token is consumed only when present and not
        starting with "-"; otherwise the option resolves without value.
      • boolean: resolves without value.
    - an option-like token ("-" prefix, length > 1) naming nothing is unknown;
      a following token that does not start with "-" is kept with it.
    - anything else is positional.

    returns
    - ParseResult(args, unknown, resolved, tokens, head, positions)
    """
    args = []
    unknown = []
    resolved = []
    unclaimed = []
    positions = []
    head = -1
    literal = False

    def keep(position):
        unclaimed.append(tokens[position])
        positions.append(position)

    def positional(position):
        nonlocal head
        if head < 0:
            head = len(unclaimed)
        args.append(tokens[position])
        keep(position)

    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1

        if literal:
            positional(index - 1)
            continue

        if token == LITERAL:
            literal = True
            keep(index - 1)
            continue

        option = _lookup(options, token)

        if option is not None:
            if option.required:
                if index >= len(tokens):
                    raise MissingOptionArgumentError(
                        "option %r argument missing" % option.flags,
                        title="missing option argument",
                        code=FaultCode.MISSING_OPTION_ARGUMENT,
                        hint="pass a value after %s (for example: %s <value>)" % (token, token),
                        option=option,
                    )
                resolved.append((option, tokens[index]))
                index += 1
            elif option.optional:
                following = tokens[index] if index < len(tokens) else None
                if following is not None and not following.startswith("-"):
                    resolved.append((option, following))
                    index += 1
                else:
                    resolved.append((option, None))
            else:
                resolved.append((option, None))
        elif len(token) > 1 and token[0] == "-":
            unknown.append(token)
            keep(index - 1)
            if index < len(tokens) and tokens[index] and tokens[index][0] != "-":
                unknown.append(tokens[index])
                keep(index)
                index += 1
        else:
            positional(index - 1)

    return ParseResult(args, unknown, resolved, unclaimed, head, tuple(positions))


def scan(tokens, options=(), /):
    """
    Normalize and classify raw tokens, keeping track of the raw form so that
    remainder()/tail() hand subcommands their tokens exactly as given.
    """
    raw = tuple(tokens)
    pairs = _expand(raw, options)
    result = classify([token for token, _ in pairs], options)
    return result._replace(raw=raw, origins=tuple(origin for _, origin in pairs))


def bind(arguments, args, command, /):
    """
    Map positional tokens onto declared Args and append the command handle.

    rules
    - a required Arg without a token raises MissingArgumentError (a required
      variadic Arg needs at least one token).
    - an optional Arg without a token binds None.
    - a variadic Arg must be the last one (VariadicNotLastError otherwise) and
      binds the list of every token from its position on (empty when optional
      and no token is left).
    - with no declared Args every token is passed through.
    - tokens beyond the declared (non-variadic) Args are dropped.

    returns
    - list of handler arguments, the command always last.
    """
    if not arguments:
        return [*args, command]

    for argument in arguments[:-1]:
        if argument.variadic:
            raise VariadicNotLastError(
                "variadic arguments must be last %r" % argument.name,
                title="variadic argument not last",
                code=FaultCode.VARIADIC_NOT_LAST,
                hint="move %s to the end of the parameter list" % argument.human(),
                argument=argument,
            )

    bound = []
    for index, argument in enumerate(arguments):
        if index < len(args):
            bound.append(list(args[index:]) if argument.variadic else args[index])
        elif argument.required:
            raise MissingArgumentError(
                "missing required argument %r" % argument.name,
                title="missing argument",
                code=FaultCode.MISSING_ARGUMENT,
                hint="pass a value for %s" % argument.human(),
                argument=argument,
            )
        else:
            bound.append([] if argument.variadic else None)

    if len(args) > len(arguments) and not arguments[-1].variadic:
        logger.debug("dropping extra positional tokens %r", args[len(arguments):])

    bound.append(command)
    return bound


__all__ = (
    "LITERAL",
    "ParseResult",
    "normalize",
    "classify",
    "bind",
    "scan",
)
