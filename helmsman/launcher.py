"""
Helmsman subcommand launcher: run a sibling executable for an exec subcommand.

Naming convention
- For a program at "<dir>/<base>.py" (or "<dir>/<base>") and a subcommand
  "<name>", the executable is "<dir>/<base>-<name>.py" when it exists (run with
  the same interpreter as the parent), otherwise "<dir>/<base>-<name>".
- The plain path is not validated up front; a missing or non-executable file
  surfaces as a spawn error and is translated into a fault.

Process model
- The child inherits the parent's standard streams.
- While the child runs, SIGUSR1, SIGUSR2, SIGTERM, SIGINT and SIGHUP (those the
  platform defines) received by the parent are relayed to the child.
- When the child exits, the parent exits with the child's status; a child
  killed by signal N yields 128 + N.
"""
import logging
import os.path
import signal
import subprocess
import sys

from .faults import FaultCode, SubcommandNotExecutableError, SubcommandNotFoundError

logger = logging.getLogger(__name__)

SCRIPT_SUFFIX = ".py"

SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGUSR1", "SIGUSR2", "SIGTERM", "SIGINT", "SIGHUP") if hasattr(signal, name)
)


def program_base(argv0, /):
    """
    Return the program basename without the script suffix ("/bin/git.py" -> "git").
    """
    base = os.path.basename(argv0)
    if base.endswith(SCRIPT_SUFFIX):
        base = base[:-len(SCRIPT_SUFFIX)]
    return base


def locate(argv0, name, /):
    """
    Resolve the executable for subcommand name.

    returns
    - (path, script): script is True when the path is a "<base>-<name>.py" file
      that must be run through the current interpreter.
    """
    stem = os.path.join(os.path.dirname(argv0), program_base(argv0) + "-" + name)
    if os.path.exists(stem + SCRIPT_SUFFIX):
        return stem + SCRIPT_SUFFIX, True
    return stem, False


def _status(returncode):
    # Popen reports death by signal N as -N
    return 128 - returncode if returncode < 0 else returncode


class Launch:
    """
    One child process started for an exec subcommand.

    Lifecycle
    - start(): spawn the child (translates spawn errors into faults).
    - wait(): relay signals until the child exits, then return its exit status.
    Exactly one of "failed to start" (fault raised by start) or "closed with
    code" (status returned by wait) happens per launch.
    """

    def __init__(self, path, script, args=(), /):
        self.path = path
        self.script = script
        self.args = list(args)
        self.process = None

    @property
    def command(self):
        """
        Argument vector handed to the OS.
        """
        if self.script:
            return [sys.executable, self.path, *self.args]
        return [self.path, *self.args]

    def start(self):
        logger.debug("spawning %r", self.command)
        try:
            self.process = subprocess.Popen(self.command)
        except FileNotFoundError:
            raise SubcommandNotFoundError(
                "%s(1) does not exist, try --help" % self.path,
                title="subcommand not found",
                code=FaultCode.SUBCOMMAND_NOT_FOUND,
                hint="install %s next to the program or run with --help to list commands" % os.path.basename(self.path),
                path=self.path,
            ) from None
        except PermissionError:
            raise SubcommandNotExecutableError(
                "%s(1) not executable. try chmod or run as root" % self.path,
                title="subcommand not executable",
                code=FaultCode.SUBCOMMAND_NOT_EXECUTABLE,
                hint="chmod +x %s" % self.path,
                path=self.path,
            ) from None
        return self

    def relay(self, signum, frame=None):
        """
        Forward signum to the child while it has not reported an exit code.
        """
        if self.process is not None and self.process.poll() is None:
            logger.debug("relaying signal %d to pid %d", signum, self.process.pid)
            self.process.send_signal(signum)

    def wait(self):
        previous = {}
        try:
            for signum in SIGNALS:
                try:
                    previous[signum] = signal.signal(signum, self.relay)
                except ValueError:
                    # not the main thread: relaying is unavailable
                    break
            returncode = self.process.wait()
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        logger.debug("%s exited with %d", self.path, returncode)
        return _status(returncode)


def launch(argv0, name, args=(), /):
    """
    Locate, spawn and wait for the executable of subcommand name, then exit
    the current process with the child's status.
    """
    path, script = locate(argv0, name)
    sys.exit(Launch(path, script, args).start().wait())


__all__ = (
    "SCRIPT_SUFFIX",
    "SIGNALS",
    "program_base",
    "locate",
    "Launch",
    "launch",
)
