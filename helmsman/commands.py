"""
Helmsman command layer: declare, route and run CLI commands.

What this module provides
- Command: one node of a command tree with:
  • Declarative options ("-p, --port <number>") and positional parameters
    ("copy <src> [dst...]").
  • Subcommands dispatched in-process (action handlers) or to a sibling
    executable (exec entries, see helmsman.launcher).
  • Alias and default-command routing at the level owning the subcommands.
  • Help and version renderers (rich-based, color-aware).
  • An explicit option map (values / opts()) instead of ad hoc attributes.

Quick start
    import sys
    from helmsman import Command

    program = Command("pm").version("0.1.0")
    program.option("-v, --verbose", "chatty output")

    program.command("install [name...]", "install one or more packages").aka("i")
    program.command("search [query]", "search the registry")

    (program.command("run <script>")
        .option("-p, --port <number>", "port to bind", type=int)
        .action(lambda script, command: print(script, command.values["port"])))

    program.parse(sys.argv)

Parse lifecycle
    Start -> Normalized -> OptionsClassified -> Routed -> {Dispatched | HelpShown | Errored}

Routing (first positional token, in priority order)
    1. the name of a subcommand
    2. the alias of a subcommand (rewritten to the canonical name)
    3. the default command, when one was declared
    4. anything else: the root handler receives it, or a NoMatchingCommandWarning
       is surfaced
    5. no positional at all: help on -h/--help, UnknownOptionError on unknown
       options, otherwise the root handler (if any) runs

See also
- helmsman.parsing for the token pipeline.
- helmsman.faults for fault codes and rendering behavior.
"""
import logging
import re
import sys
from collections import defaultdict
from collections.abc import Iterable

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .arguments import Arg, Option
from .faults import *
from .launcher import launch, program_base
from .parsing import bind, scan
from .utils import *

logger = logging.getLogger(__name__)

HELP_FLAGS = ("-h", "--help")
HELP_DESCR = "output usage information"


class Command(metaclass=IntrospectableType):
    """
    Command tree node: declarations, routing and dispatch.

    Responsibilities
    - Introspection: exposes metadata (name, descr, alias, options, params, ...)
      as read-only properties.
    - Composition: children are owned by the parent's ordered list; every child
      keeps a read-only reference to its parent for root/path lookups.
    - Parsing: parse() runs the token pipeline with this command's options,
      routes to a child and dispatches.
    - Rendering: help/version output via rich.

    Runtime switches (inherited by children created through command())
    - shell: print faults and exit (True, the default) or raise them (False).
    - colorful: styled help and diagnostics.
    - fancy: rich panel chrome around help and diagnostics.
    """

    __introspectable__ = (
        "name",
        "descr",
        "alias",
        "options",
        "params",
        "children",
        "parent",
        "default",
        "hidden",
        "tolerant",
        "executable",
        "values",
        "shell",
        "colorful",
        "fancy",
    )

    __displayable__ = (
        "name",
        "descr",
        "alias",
        "default",
        "executable",
    )

    def __init__(self, name=Unset, /, *, descr=Unset, shell=Unset, colorful=Unset, fancy=Unset):
        """
        Create a command.

        Parameters
        - name: Unset | str
          Command name. A root command without a name takes the program
          basename (without ".py") when parse() runs.
        - descr: Unset | str | Text
          Description shown in help.
        - shell, colorful, fancy: Unset | bool
          Runtime switches; Unset means True for shell, False otherwise.

        Raises
        - TypeError/ValueError on malformed names or descriptions.
        """
        if not isinstance(name, str | Unset):
            raise TypeError(f"{type(self).__typename__} 'name' must be a string")
        elif isinstance(name, str) and not re.fullmatch(r"\S+", name):
            raise ValueError(f"{type(self).__typename__} 'name' must be a non-empty word")

        self._named = name is not Unset
        self._name = coalesce(name, program_base(sys.argv[0]) if sys.argv else "")
        self._descr = Unset
        self.describe(descr)
        self._alias = None
        self._options = []
        self._params = []
        self._children = []
        self._parent = None
        self._default = None
        self._hidden = False
        self._tolerant = False
        self._executable = False
        self._values = {}
        self._shell = bool(coalesce(shell, True))
        self._colorful = bool(coalesce(colorful, False))
        self._fancy = bool(coalesce(fancy, False))

        self._coercions = {}
        self._handler = None
        self._version = None
        self._versioner = None
        self._helper = None
        self._argv0 = sys.argv[0] if sys.argv else ""

    @property
    def root(self):
        """
        Return the topmost command of this tree.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the ancestry from root to this command as a tuple.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    @property
    def route(self):
        """
        Return the user-facing invocation of this command ("git remote add").
        """
        return " ".join(step.name for step in self.path)

    # ── Declarations ────────────────────────────────────────────────────────

    def command(self, signature, descr=Unset, /, *, default=False, hidden=False):
        """
        Register a subcommand.

        Parameters
        - signature: str
          "name <required> [optional] [variadic...]".
        - descr: Unset | str | Text
          With a description the subcommand is an exec entry: it is listed in
          help and, without an action handler, dispatched to the sibling
          executable "<program>-<name>". The parent is returned so further
          entries can be chained. Without a description the new subcommand
          itself is returned for further declaration.
        - default: bool
          Route to this subcommand when no other command matches.
        - hidden: bool
          Exclude this subcommand from the help listing.
        """
        if not isinstance(signature, str):
            raise TypeError(f"{type(self).__typename__} 'signature' must be a string")
        elif not (tokens := signature.split()):
            raise ValueError(f"{type(self).__typename__} 'signature' cannot be empty")

        child = type(self)(tokens[0], shell=self._shell, colorful=self._colorful, fancy=self._fancy)
        child._params = Arg.parse_all(tokens[1:])
        child._parent = self
        child._argv0 = self._argv0
        child._hidden = bool(hidden)

        if descr is not Unset:
            child.describe(descr)
            child._executable = True

        if default:
            self._default = child.name

        self._children.append(child)
        logger.debug("registered %s under %s", child.name, self.route)

        return self if descr is not Unset else child

    def arguments(self, signature, /):
        """
        Declare the positional parameters of this command ("<src> [dst...]").
        """
        if not isinstance(signature, str | Iterable):
            raise TypeError(f"{type(self).__typename__} 'signature' must be a string")
        self._params = Arg.parse_all(signature)
        return self

    def option(self, flags, descr=Unset, /, type=Unset, default=Unset, *, reduce=Unset):
        """
        Declare an option.

        Parameters
        - flags: str
          "-p, --port <number>" (required value), "-c, --cheese [type]" (optional
          value), "-v, --verbose" (boolean) or "--no-color" (negation).
        - descr: Unset | str | Text
          Description shown in help.
        - type: Unset | Callable[[str], Any] | re.Pattern
          Converter applied to received values. A compiled pattern keeps the
          matched text, or falls back to the default when it does not match.
        - default: Any
          Initial value (negations start at True when no default is given) and
          value of a boolean/optional option given without a value.
        - reduce: Unset | Callable[[str | None, Any], Any]
          Called with (value, previous) on every occurrence; previous is the
          current value or the default. Useful for counters and collectors.

        Later registrations with the same canonical name win.
        """
        option = Option(flags, descr)

        if isinstance(type, re.Pattern):
            pattern = type
            type = rename(lambda value: match.group(0) if (match := pattern.search(value)) else coalesce(default), "matcher")
        if not callable(type) and type is not Unset:
            raise TypeError(f"{self.__typename__} 'type' must be callable or a compiled pattern")
        if not callable(reduce) and reduce is not Unset:
            raise TypeError(f"{self.__typename__} 'reduce' must be callable")

        self._options.append(option)
        self._coercions[option] = (type, reduce, default)
        self._initialize(option)
        return self

    def version(self, version, flags="-V, --version", descr="output the version number", /):
        """
        Register a version option that prints version and exits with status 0.
        """
        if not isinstance(version, str):
            raise TypeError(f"{type(self).__typename__} 'version' must be a string")
        self._version = version
        self._versioner = Option(flags, descr)
        self._options.append(self._versioner)
        self._coercions[self._versioner] = (Unset, Unset, Unset)
        return self

    def aka(self, alias, /):
        """
        Set an alias on the last registered subcommand, or on this command when
        it has no subcommands.
        """
        if not isinstance(alias, str) or not re.fullmatch(r"\S+", alias):
            raise TypeError(f"{type(self).__typename__} 'alias' must be a non-empty word")
        (self._children[-1] if self._children else self)._alias = alias
        return self

    def describe(self, descr, /):
        """
        Set the description shown in help.
        """
        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{type(self).__typename__} 'descr' must be a string")
        self._descr = coalesce(descr)
        return self

    def action(self, handler, /):
        """
        Register the in-process handler of this command.

        The handler receives the bound positional parameters (one per declared
        Arg, the variadic one as a list) followed by this command. On the root
        command it also receives positionals that match no subcommand.
        """
        if not callable(handler):
            raise TypeError(f"{type(self).__typename__} handler must be callable")
        self._handler = handler
        return self

    def allow_unknown_option(self, allow=True, /):
        """
        Tolerate unknown options instead of failing with UnknownOptionError.
        """
        self._tolerant = bool(allow)
        return self

    def opts(self):
        """
        Snapshot of every declared option: canonical name -> value (None when unset).
        The version option reports the version string.
        """
        values = {}
        for option in self._options:
            if option is self._versioner:
                values[option.name] = self._version
            else:
                values[option.name] = self._values.get(option.name)
        return values

    # ── Option map ──────────────────────────────────────────────────────────

    def _initialize(self, option):
        _, _, default = self._coercions[option]
        if option.negate:
            self._values[option.name] = coalesce(default, True)
        elif default is not Unset:
            self._values[option.name] = default

    def _reset(self):
        self._values.clear()
        for option in self._options:
            if option is not self._versioner:
                self._initialize(option)

    def _resolve(self, option, value):
        """
        Apply one option resolution to the option map.
        """
        if option is self._versioner:
            self._print_version()
            sys.exit(0)

        type, reduce, default = self._coercions[option]
        default = coalesce(default)

        try:
            if value is not None and type is not Unset:
                value = type(value)
            if reduce is not Unset:
                previous = self._values.get(option.name)
                value = reduce(value, default if previous is None else previous)
        except (TypeError, ValueError) as exception:
            raise OptionCoercionError(
                "invalid value %r for option %r" % (value, option.flags),
                title="invalid option value",
                code=FaultCode.OPTION_COERCION,
                hint="run '%s --help' to see the expected values (%s)" % (self.route, exception),
                option=option,
                tool=self,
            ) from None

        if value is None:
            value = False if option.negate else (default or True)
        self._values[option.name] = value

    def _classify(self, tokens):
        """
        Normalize and classify tokens with this command's options, then apply
        the resolutions to a fresh option map.
        """
        result = scan(tokens, self._options)
        self._reset()
        for option, value in result.resolved:
            self._resolve(option, value)
        return result

    # ── Routing and dispatch ────────────────────────────────────────────────

    def _find(self, name):
        for child in reversed(self._children):
            if child.name == name:
                return child
        return None

    def _find_alias(self, name):
        for child in reversed(self._children):
            if child.alias == name:
                return child
        return None

    def _unknown(self, unknown):
        return UnknownOptionError(
            "unknown option %r" % unknown[0],
            title="unknown option",
            code=FaultCode.UNKNOWN_OPTION,
            hint="try '%s --help' to see all available options" % self.route,
            unknown=tuple(unknown),
            tool=self,
        )

    def _prepare(self, result):
        """
        Check help/unknown tokens and bind positionals for the handler.
        """
        if self._helps(result):
            self.help()
        if result.unknown and not self._tolerant:
            raise self._unknown(result.unknown)
        return bind(self._params, result.args, self)

    def _call(self, result):
        try:
            bound = self._prepare(result)
        except CommandException as fault:
            return self.trigger(fault)
        logger.debug("dispatching %s with %r", self.route, bound[:-1])
        self._handler(*bound)

    def _dispatch(self, child, result, tokens, rest):
        """
        Hand control to a routed child.

        - tokens: unclaimed raw tokens without the routed name (normalized and
          classified again by the child with its own options).
        - rest: positionals after the routed name (used by the help command).
        """
        if child is self._helper:
            target = (self._find(rest[0]) or self._find_alias(rest[0])) if rest else None
            (target or self).help()

        if child._children:
            return child._run(tokens)

        if child._handler is not None:
            try:
                result = child._classify(tokens)
            except CommandException as fault:
                return child.trigger(fault)
            return child._call(result)

        if child._executable:
            name = "-".join(step.name for step in child.path[1:])
            logger.debug("launching %s for %s", name, self.route)
            try:
                launch(self._argv0, name, tokens)
            except CommandException as fault:
                return child.trigger(fault)
            return None

        return self._unmatched(result)

    def _unmatched(self, result):
        if self._handler is not None:
            return self._call(result)
        logger.debug("no command matches %r", result.args)
        self.trigger(NoMatchingCommandWarning(
            "no command matches %r" % result.args[0] if result.args else "no command matches",
            title="no matching command",
            code=FaultCode.NO_MATCHING_COMMAND,
            hint="run '%s --help' to see available commands" % self.route,
            args=tuple(result.args),
        ))

    def _register_helper(self):
        if self._helper is None and self._find("help") is None:
            self.command("help [cmd]", "display help for [cmd]")
            self._helper = self._children[-1]

    def parse(self, argv=Unset, /):
        """
        Parse an argument vector and dispatch.

        Parameters
        - argv: Unset | Iterable[str]
          sys.argv-shaped vector: element 0 is the program path, the rest are
          the arguments. Unset reads sys.argv.

        Returns
        - ParseResult of this command's own classification (when dispatch does
          not terminate the process).

        Raises
        - CommandException subclasses when shell is False; in shell mode faults
          are printed and the process exits with status 1.
        """
        if argv is Unset:
            argv = sys.argv
        if isinstance(argv, str) or not isinstance(argv, Iterable):
            raise TypeError("parse() argument must be an iterable of strings")
        argv = list(argv)
        if not all(isinstance(token, str) for token in argv):
            raise TypeError("parse() argument must be an iterable of strings")

        self._argv0 = argv[0] if argv else ""
        if not self._named and self._argv0:
            self._name = program_base(self._argv0)

        return self._run(argv[1:])

    def _run(self, tokens):
        """
        Classify tokens with this command's options, route and dispatch.
        """
        if self._children:
            self._register_helper()
            for child in self._children:
                child._argv0 = self._argv0

        tokens = list(tokens)
        if self._children and not tokens and self._default is None:
            tokens.append("--help")

        try:
            result = self._classify(tokens)
        except CommandException as fault:
            return self.trigger(fault)

        name = result.args[0] if result.args else None
        child = self._find(name) if name is not None else None
        if child is None and name is not None and (child := self._find_alias(name)):
            result.args[0] = child.name

        if child is not None:
            logger.debug("routing %r to %s", name, child.route)
            self._dispatch(child, result, result.tail(), result.args[1:])
        elif self._default is not None and (result.args or not self._helps(result)):
            child = self._find(self._default)
            logger.debug("routing to default command %s", child.route)
            result.args.insert(0, child.name)
            self._dispatch(child, result, result.remainder(routed=False), result.args[1:])
        elif result.args:
            self._unmatched(result)
        else:
            if self._helps(result):
                self.help()
            if result.unknown and not self._tolerant:
                return self.trigger(self._unknown(result.unknown))
            if self._handler is not None:
                self._call(result)

        return result

    @staticmethod
    def _helps(result):
        return any(token in HELP_FLAGS for token in result.unknown)

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this command's runtime switches.

        The command that raised the fault (its 'tool' option) keeps ownership, so
        diagnostics name the right route even when re-surfaced by an ancestor.
        """
        tool = getattr(fault, "options", {}).get("tool", self)
        trigger(fault, **({
            "tool": tool,
            "shell": tool.shell,
            "colorful": tool.colorful,
            "fancy": tool.fancy,
        } | options))

    # ── Rendering ───────────────────────────────────────────────────────────

    def _styler(self):
        styles = defaultdict(str, {
            "usage-label": "bold #00E6FF",
            "program-name": "bold #FF4D94",
            "usage-section": "bold #36C5F0",
            "description-section": "italic #A3A3A3",
            "group-label": "bold #FFFFFF",
            "option-name": "bold #00E6FF",
            "argument-description": "#9CA3AF",
            "children": "bold #36C5F0",
            "children-description": "#9CA3AF",
            "version": "bold #22C55E",
            "panel-title": "bold #FF4D94",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def styler(style):
            return styles[style] if self._colorful else ""

        return styler

    def usage(self):
        """
        Return the usage tail: "[options] [command] <args>".
        """
        return "".join((
            "[options]",
            " [command]" if self._children else "",
            " " + " ".join(param.human() for param in self._params) if self._params else "",
        ))

    def _option_rows(self):
        rows = [(option.flags, coalesce(option.descr, "") or "") for option in self._options]
        rows.append(("-h, --help", HELP_DESCR))
        return rows

    def _command_rows(self):
        rows = []
        for child in filter(lambda x: not x.hidden, self._children):
            entry = child.name + ("|" + child.alias if child.alias else "")
            if child.options:
                entry += " [options]"
            if child.params:
                entry += " " + " ".join(param.human() for param in child.params)
            rows.append((entry, child.descr or ""))
        return rows

    def _render_help(self):
        """
        Build the help renderable.

        Layout

            Usage: <route> [options] [command] <args>

              <description>

            Options:

              <flags padded>  <description>
              -h, --help      output usage information

            Commands:

              name|alias [options] <args>  <description>
        """
        styler = self._styler()
        help = Text()

        help.append("Usage", styler("usage-label")).append(": ")
        help.append(self.route, styler("program-name")).append(" ")
        help.append(self.usage(), styler("usage-section")).append("\n")

        if self._descr:
            help.append("\n  ").append(str(self._descr), styler("description-section")).append("\n")

        def block(label, rows, style):
            width = max(len(left) for left, _ in rows)
            help.append("\n").append(label, styler("group-label")).append(":\n\n")
            for left, right in rows:
                help.append("  ").append(pad(left, width) if right else left, styler(style))
                if right:
                    help.append("  ").append(str(right), styler("argument-description" if style == "option-name" else "children-description"))
                help.append("\n")

        block("Options", self._option_rows(), "option-name")
        if rows := self._command_rows():
            block("Commands", rows, "children")

        return help

    def help_information(self):
        """
        Return the help text as a plain string.
        """
        return self._render_help().plain

    def output_help(self):
        """
        Print help to the standard output without exiting.
        """
        renderable = self._render_help()
        if self._fancy:
            styler = self._styler()
            renderable = Panel(
                Group(renderable),
                title=Text.assemble("[ ", f"{self.route} HELP".upper(), " ]", style=styler("panel-title")),
                title_align="left",
            )
        Console().print(renderable, soft_wrap=True)

    def help(self):
        """
        Print help and exit with status 0.
        """
        self.output_help()
        sys.exit(0)

    def _print_version(self):
        styler = self._styler()
        Console().print(Text(self._version, styler("version")), soft_wrap=True)


__all__ = (
    "Command",
)
