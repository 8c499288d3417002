"""
Commands module behavioral tests (declaration, routing, dispatch, help).

Scope
- Validate declaration API (fluent returns, tree properties, errors).
- Validate option values: negation, defaults, converters, reducers, patterns.
- Validate routing by name, alias and default command, nested trees and
  the root catch-all.
- Validate implicit help, help command, version option and fault exit codes.

Conventions
- Test method names follow CamelCase per project convention.
- Embedding-style tests use shell=False so faults are raised; shell-mode
  tests assert on the exit status and captured streams.
"""
import io
import re
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import TestCase, mock

from helmsman import Command
from helmsman.faults import (
    MissingArgumentError,
    NoMatchingCommandWarning,
    OptionCoercionError,
    UnknownOptionError,
)


def run(program, *argv):
    """
    Parse ["prog", *argv] capturing both streams; returns (status, stdout, stderr).
    """
    stdout, stderr = io.StringIO(), io.StringIO()
    status = None
    with redirect_stdout(stdout), redirect_stderr(stderr):
        try:
            program.parse(["prog", *argv])
        except SystemExit as exit:
            status = exit.code
    return status, stdout.getvalue(), stderr.getvalue()


class TestDeclaration(TestCase):
    """Behavioral tests for building command trees."""

    def testCommandWithoutDescriptionReturnsChild(self):
        program = Command("prog")
        child = program.command("run <script>")
        self.assertIsNot(child, program)
        self.assertEqual(child.name, "run")
        self.assertEqual([param.name for param in child.params], ["script"])
        self.assertFalse(child.executable)

    def testCommandWithDescriptionReturnsParent(self):
        program = Command("prog")
        self.assertIs(program.command("install [name...]", "install packages"), program)
        child, = program.children
        self.assertTrue(child.executable)
        self.assertEqual(child.descr, "install packages")

    def testTreeProperties(self):
        program = Command("prog")
        child = program.command("remote")
        grandchild = child.command("add")
        self.assertIs(grandchild.parent, child)
        self.assertIs(grandchild.root, program)
        self.assertEqual(grandchild.path, (program, child, grandchild))
        self.assertEqual(grandchild.route, "prog remote add")
        self.assertIsNone(program.parent)

    def testAkaTargetsLastChild(self):
        program = Command("prog")
        program.command("install", "install packages").aka("i")
        self.assertEqual(program.children[-1].alias, "i")
        self.assertIsNone(program.alias)

    def testAkaWithoutChildrenTargetsSelf(self):
        self.assertEqual(Command("prog").aka("p").alias, "p")

    def testDefaultAndHidden(self):
        program = Command("prog")
        program.command("serve", default=True)
        program.command("debug", hidden=True)
        self.assertEqual(program.default, "serve")
        self.assertTrue(program.children[-1].hidden)

    def testChildrenInheritRuntimeSwitches(self):
        program = Command("prog", shell=False, colorful=True)
        child = program.command("run")
        self.assertFalse(child.shell)
        self.assertTrue(child.colorful)
        self.assertFalse(child.fancy)

    def testRootShellDefault(self):
        self.assertTrue(Command("prog").shell)

    def testArgumentsDeclaresParams(self):
        program = Command("prog").arguments("<src> [dst...]")
        self.assertEqual([param.human() for param in program.params], ["<src>", "[dst...]"])

    def testInvalidDeclarationsRaise(self):
        with self.assertRaises(ValueError):
            Command("two words")
        with self.assertRaises(TypeError):
            Command(1)
        with self.assertRaises(ValueError):
            Command("prog").command("   ")
        with self.assertRaises(TypeError):
            Command("prog").option("--port <n>", type=5)
        with self.assertRaises(TypeError):
            Command("prog").action("not callable")

    def testRepr(self):
        self.assertEqual(
            repr(Command("prog")),
            "command(name='prog', descr=None, alias=None, default=None, executable=False)",
        )

    def testNameFromProgramPath(self):
        program = Command(shell=False)
        program.parse(["/usr/local/bin/tool.py"])
        self.assertEqual(program.name, "tool")


class TestOptionValues(TestCase):
    """Behavioral tests for the option map."""

    def testNegationStartsTrue(self):
        program = Command("prog", shell=False).option("--no-color")
        program.parse(["prog"])
        self.assertIs(program.values["color"], True)
        program.parse(["prog", "--no-color"])
        self.assertIs(program.values["color"], False)

    def testClusterMatchesSeparateFlags(self):
        program = Command("prog", shell=False).option("-a, --all").option("-b, --brief")
        program.parse(["prog", "-ab"])
        clustered = program.opts()
        program.parse(["prog", "-a", "-b"])
        self.assertEqual(clustered, program.opts())
        self.assertEqual(clustered, {"all": True, "brief": True})

    def testValuesResetBetweenParses(self):
        program = Command("prog", shell=False).option("-a, --all")
        program.parse(["prog", "-a"])
        program.parse(["prog"])
        self.assertEqual(program.opts(), {"all": None})

    def testOptionalValue(self):
        program = Command("prog", shell=False).option("-c, --cheese [type]")
        program.parse(["prog", "-c"])
        self.assertIs(program.values["cheese"], True)
        program.parse(["prog", "-c", "gouda"])
        self.assertEqual(program.values["cheese"], "gouda")

    def testOptionalValueDefault(self):
        program = Command("prog", shell=False).option("-c, --cheese [type]", default="brie")
        program.parse(["prog"])
        self.assertEqual(program.values["cheese"], "brie")
        program.parse(["prog", "--cheese"])
        self.assertEqual(program.values["cheese"], "brie")

    def testConverter(self):
        program = Command("prog", shell=False).option("-p, --port <number>", type=int)
        program.parse(["prog", "--port=8080"])
        self.assertEqual(program.values["port"], 8080)

    def testConverterFailureRaises(self):
        program = Command("prog", shell=False).option("-p, --port <number>", type=int)
        with self.assertRaises(OptionCoercionError):
            program.parse(["prog", "--port", "http"])

    def testReducerCounter(self):
        program = Command("prog", shell=False)
        program.option("-v, --verbose", "verbosity", reduce=lambda _, previous: previous + 1, default=0)
        program.parse(["prog", "-vvv"])
        self.assertEqual(program.values["verbose"], 3)

    def testReducerCollector(self):
        program = Command("prog", shell=False)
        program.option("-i, --include <path>", reduce=lambda value, previous: previous + [value], default=[])
        program.parse(["prog", "-i", "a", "--include", "b"])
        self.assertEqual(program.values["include"], ["a", "b"])

    def testPattern(self):
        program = Command("prog", shell=False)
        program.option("-s, --size <size>", type=re.compile(r"^(small|medium|large)$"), default="medium")
        program.parse(["prog", "--size", "large"])
        self.assertEqual(program.values["size"], "large")
        program.parse(["prog", "--size", "huge"])
        self.assertEqual(program.values["size"], "medium")

    def testOptsListsEveryOption(self):
        program = Command("prog", shell=False).version("1.2.3").option("-p, --port <n>").option("--dry-run")
        program.parse(["prog", "--dry-run"])
        self.assertEqual(program.opts(), {"version": "1.2.3", "port": None, "dryRun": True})

    def testValuesAreACopy(self):
        program = Command("prog", shell=False).option("--no-color")
        program.values["color"] = False
        self.assertIs(program.values["color"], True)


class TestRouting(TestCase):
    """Behavioral tests for routing and dispatch."""

    def testRunPortEndToEnd(self):
        """
        "run --port=8080" binds "8080" to the run command with no unknown tokens.
        """
        program = Command("prog", shell=False)
        seen = []
        program.command("run").option("-p, --port <number>").action(lambda command: seen.append(command.opts()))
        program.parse(["prog", "run", "--port=8080"])
        self.assertEqual(seen, [{"port": "8080"}])

    def testVariadicEndToEnd(self):
        program = Command("prog", shell=False)
        seen = []
        program.command("copy <files...>").action(lambda files, command: seen.append(files))
        program.parse(["prog", "copy", "a.txt", "b.txt", "c.txt"])
        self.assertEqual(seen, [["a.txt", "b.txt", "c.txt"]])

    def testAliasRoutesToSameHandler(self):
        program = Command("prog", shell=False)
        seen = []
        program.command("install <pkg>").aka("i").action(lambda pkg, command: seen.append((pkg, command.name)))
        result = program.parse(["prog", "i", "left-pad"])
        self.assertEqual(result.args[0], "install")
        program.parse(["prog", "install", "left-pad"])
        self.assertEqual(seen, [("left-pad", "install"), ("left-pad", "install")])

    def testTerminatorEndToEnd(self):
        program = Command("prog", shell=False)
        seen = []
        program.command("exec [args...]").action(lambda args, command: seen.append(args))
        program.parse(["prog", "exec", "--", "-v", "--port"])
        self.assertEqual(seen, [["-v", "--port"]])

    def testSubcommandArgumentOrderIsKept(self):
        program = Command("prog", shell=False).option("-v, --verbose")
        seen = []
        program.command("mv <src> <dst>").action(lambda src, dst, command: seen.append((src, dst)))
        program.parse(["prog", "-v", "mv", "a", "b"])
        self.assertEqual(seen, [("a", "b")])
        self.assertIs(program.values["verbose"], True)

    def testSubcommandValueWithEqualsIsKept(self):
        """
        A value consumed by a subcommand option is never split at "=".
        """
        program = Command("prog", shell=False)
        seen = []
        program.command("commit").option("-m, --message <msg>").action(lambda command: seen.append(command.values["message"]))
        program.parse(["prog", "commit", "-m", "x=1"])
        self.assertEqual(seen, ["x=1"])

    def testSubcommandValueLookingLikeClusterIsKept(self):
        program = Command("prog", shell=False)
        seen = []
        program.command("run").option("--name <name>").action(lambda command: seen.append(command.values["name"]))
        program.parse(["prog", "run", "--name", "-abc"])
        self.assertEqual(seen, ["-abc"])

    def testClusterSharedBetweenRootAndSubcommand(self):
        """
        Flags of a cluster the root does not know reach the subcommand.
        """
        program = Command("prog", shell=False).option("-v, --verbose")
        seen = []
        program.command("run").option("-x, --extra").action(lambda command: seen.append(command.values["extra"]))
        program.parse(["prog", "run", "-vx"])
        self.assertEqual(seen, [True])
        self.assertIs(program.values["verbose"], True)

    def testRequiredVariadicNeedsOneToken(self):
        program = Command("prog", shell=False)
        program.command("copy <files...>").action(lambda files, command: None)
        with self.assertRaises(MissingArgumentError):
            program.parse(["prog", "copy"])

    def testExecEntryDoesNotFallThrough(self):
        """
        Once the launcher hands back control, the root handler is not invoked.
        """
        program = Command("prog", shell=False)
        program.command("deploy", "ship it")
        seen = []
        program.action(lambda *args: seen.append(args[:-1]))
        with mock.patch("helmsman.commands.launch") as launch:
            program.parse(["prog", "deploy", "--fast"])
        self.assertEqual(launch.call_args.args[1:], ("deploy", ["--fast"]))
        self.assertEqual(seen, [])

    def testDefaultCommand(self):
        program = Command("prog", shell=False)
        seen = []
        program.command("serve", default=True).action(lambda *args: seen.append(args[:-1]))
        program.command("build").action(lambda command: seen.append("build"))
        program.parse(["prog"])
        program.parse(["prog", "extra"])
        program.parse(["prog", "build"])
        self.assertEqual(seen, [(), ("extra",), "build"])

    def testRootCatchAll(self):
        program = Command("prog", shell=False)
        seen = []
        program.command("run").action(lambda command: None)
        program.action(lambda *args: seen.append(args[:-1]))
        program.parse(["prog", "what", "ever"])
        self.assertEqual(seen, [("what", "ever")])

    def testNoMatchingCommandWarns(self):
        program = Command("prog", shell=False)
        program.command("run").action(lambda command: None)
        with self.assertWarns(NoMatchingCommandWarning):
            program.parse(["prog", "zzz"])

    def testNestedCommands(self):
        program = Command("prog", shell=False)
        seen = []
        remote = program.command("remote")
        remote.command("add <name> <url>").action(lambda name, url, command: seen.append((name, url, command.route)))
        program.parse(["prog", "remote", "add", "origin", "git@host:repo"])
        self.assertEqual(seen, [("origin", "git@host:repo", "prog remote add")])

    def testMissingArgumentRaises(self):
        program = Command("prog", shell=False)
        program.command("open <file>").action(lambda file, command: None)
        with self.assertRaises(MissingArgumentError):
            program.parse(["prog", "open"])

    def testUnknownOptionOnChildRaises(self):
        program = Command("prog", shell=False)
        program.command("run").action(lambda command: None)
        with self.assertRaises(UnknownOptionError) as context:
            program.parse(["prog", "run", "--nope"])
        self.assertEqual(context.exception.options["tool"].name, "run")
        self.assertEqual(context.exception.options["unknown"], ("--nope",))

    def testAllowUnknownOption(self):
        program = Command("prog", shell=False)
        seen = []
        program.command("run").allow_unknown_option().action(lambda command: seen.append("run"))
        program.parse(["prog", "run", "--nope"])
        self.assertEqual(seen, ["run"])

    def testUnknownOptionOnRootRaises(self):
        with self.assertRaises(UnknownOptionError):
            Command("prog", shell=False).parse(["prog", "--nope"])

    def testHandlerExceptionsPropagate(self):
        program = Command("prog", shell=False)

        def handler(command):
            raise RuntimeError("boom")

        program.command("run").action(handler)
        with self.assertRaises(RuntimeError):
            program.parse(["prog", "run"])

    def testRoutingIsLogged(self):
        program = Command("prog", shell=False)
        program.command("run").action(lambda command: None)
        with self.assertLogs("helmsman.commands", "DEBUG") as logs:
            program.parse(["prog", "run"])
        self.assertTrue(any("routing" in line for line in logs.output))

    def testParseRejectsStrings(self):
        with self.assertRaises(TypeError):
            Command("prog").parse("prog run")


class TestShellExits(TestCase):
    """Exit status and diagnostics in shell mode."""

    def testImplicitHelpExitsZero(self):
        program = Command("prog")
        program.command("run").action(lambda command: None)
        status, stdout, _ = run(program)
        self.assertEqual(status, 0)
        self.assertIn("Usage: prog [options] [command]", stdout)
        self.assertIn("help [cmd]", stdout)

    def testHelpFlagExitsZero(self):
        status, stdout, stderr = run(Command("prog").option("-p, --port <n>", "port"), "--help")
        self.assertEqual(status, 0)
        self.assertIn("-p, --port <n>", stdout)
        self.assertEqual(stderr, "")

    def testShortHelpFlag(self):
        status, stdout, _ = run(Command("prog"), "-h")
        self.assertEqual(status, 0)
        self.assertIn("Usage: prog [options]", stdout)

    def testDefaultCommandKeepsRootHelp(self):
        program = Command("prog")
        program.command("serve", default=True).action(lambda command: None)
        status, stdout, _ = run(program, "--help")
        self.assertEqual(status, 0)
        self.assertIn("Usage: prog [options] [command]", stdout)

    def testChildHelp(self):
        program = Command("prog")
        program.command("run <script>").option("-p, --port <n>").action(lambda script, command: None)
        status, stdout, _ = run(program, "run", "--help")
        self.assertEqual(status, 0)
        self.assertIn("Usage: prog run [options] <script>", stdout)

    def testHelpCommand(self):
        program = Command("prog")
        program.command("run <script>").action(lambda script, command: None)
        status, stdout, _ = run(program, "help", "run")
        self.assertEqual(status, 0)
        self.assertIn("Usage: prog run [options] <script>", stdout)
        status, stdout, _ = run(program, "help")
        self.assertEqual(status, 0)
        self.assertIn("Usage: prog [options] [command]", stdout)

    def testVersion(self):
        program = Command("prog").version("1.2.3")
        for flag in ("-V", "--version"):
            status, stdout, _ = run(program, flag)
            self.assertEqual(status, 0)
            self.assertEqual(stdout.strip(), "1.2.3")

    def testMissingOptionArgumentExitsOne(self):
        status, stdout, stderr = run(Command("prog").option("-p, --port <n>"), "--port")
        self.assertEqual(status, 1)
        self.assertIn("argument missing", stderr)
        self.assertEqual(stdout, "")

    def testVariadicNotLastExitsOne(self):
        program = Command("prog")
        program.command("copy <files...> <dest>").action(lambda files, dest, command: None)
        status, _, stderr = run(program, "copy", "a", "b")
        self.assertEqual(status, 1)
        self.assertIn("variadic", stderr)

    def testUnknownOptionExitsOne(self):
        status, _, stderr = run(Command("prog"), "--nope")
        self.assertEqual(status, 1)
        self.assertIn("unknown option '--nope'", stderr)
        self.assertIn("prog --help", stderr)

    def testMissingExecutableExitsOne(self):
        """
        An exec subcommand without an executable reports "does not exist".
        """
        program = Command("prog")
        program.command("nope", "not installed")
        status, _, stderr = run(program, "nope")
        self.assertEqual(status, 1)
        self.assertIn("does not exist", stderr)

    def testNoMatchingCommandDoesNotExit(self):
        program = Command("prog")
        program.command("run").action(lambda command: None)
        status, _, stderr = run(program, "zzz")
        self.assertIsNone(status)
        self.assertIn("warning: no command matches 'zzz'", stderr)


class TestHelpRendering(TestCase):
    """Behavioral tests for the help renderer."""

    def testLayout(self):
        program = Command("prog", descr="demo")
        program.option("-p, --port <number>", "port")
        program.command("run <script>").option("-d, --debug").describe("run a script")
        self.assertEqual(
            program.help_information(),
            "Usage: prog [options] [command]\n"
            "\n"
            "  demo\n"
            "\n"
            "Options:\n"
            "\n"
            "  -p, --port <number>  port\n"
            "  -h, --help" + " " * 11 + "output usage information\n"
            "\n"
            "Commands:\n"
            "\n"
            "  run [options] <script>  run a script\n",
        )

    def testAliasAndHiddenInListing(self):
        program = Command("prog")
        program.command("install <pkg>", "install a package").aka("i")
        program.command("debug", "internal", hidden=True)
        text = program.help_information()
        self.assertIn("install|i <pkg>  install a package", text)
        self.assertNotIn("debug", text)

    def testColorfulTextStaysPlain(self):
        program = Command("prog", colorful=True, descr="demo")
        self.assertTrue(program.help_information().startswith("Usage: prog [options]"))

    def testFancyHelpUsesPanel(self):
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            Command("prog", fancy=True).output_help()
        self.assertIn("PROG HELP", stdout.getvalue())
        self.assertIn("Usage: prog [options]", stdout.getvalue())


if __name__ == "__main__":
    unittest.main()
