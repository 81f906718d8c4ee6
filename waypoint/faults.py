"""
Waypoint faults (dispatch errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing failure.
  Codes are grouped by domain so logs and searches stay predictable.
- DispatchError: base type that carries a message plus a read-only mapping of
  context options and knows how to render itself through rich.
- Concrete faults, one per failure kind:
  • registration: DuplicateNameError
  • routing: CommandNotFoundError, MissingSubcommandError
  • options: UnknownOptionError, InvalidOptionValueError, MissingOptionError,
    DuplicateOptionError
  • delegated: ActionError
- trigger(): central entry point used by front ends to surface a fault (print and
  exit in shell mode, raise otherwise).

Integration
- The registry raises DuplicateNameError synchronously at registration time.
- The dispatcher raises every other fault to its caller; it never swallows them.
- A thin front end (see waypoint.dispatcher.invoke) catches DispatchError and calls
  trigger(fault, shell=True, ...) to map it to an exit status.
"""
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .logging import console
from .utils import Unset, program


class FaultCode(IntEnum):
    """
    canonical fault codes used across the dispatcher (stable identifiers).

    grouping (by high-level domain)
    - registration (2010x)
      • DUPLICATE_NAME
    - routing (2110x)
      • COMMAND_NOT_FOUND, MISSING_SUBCOMMAND
    - options (2111x)
      • UNKNOWN_OPTION, INVALID_OPTION_VALUE, MISSING_OPTION, DUPLICATE_OPTION
    - delegated (2113x)
      • ACTION_FAILURE

    normalize() lets the host application remap codes to custom labels while
    keeping the numeric identifiers stable.
    """
    # --- registration errors (20xxx) ---
    DUPLICATE_NAME          = 20101

    # --- routing errors (21xxx) ---
    COMMAND_NOT_FOUND       = 21101
    MISSING_SUBCOMMAND      = 21102

    # --- option errors (21xxx) ---
    UNKNOWN_OPTION          = 21111
    INVALID_OPTION_VALUE    = 21112
    MISSING_OPTION          = 21113
    DUPLICATE_OPTION        = 21114

    # --- delegated errors (21xxx) ---
    ACTION_FAILURE          = 21131

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class DispatchError(Exception):
    """
    Base class of every fault raised by the registry and the dispatcher.

    Instances carry
    - message: the one-line, user-facing description (also str(error)).
    - options: read-only mapping with the fault context (input, route,
      suggestions, ...) and rendering options (prog, colorful, fancy, hint).

    Context entries are also readable as attributes (error.input, error.route).
    Class attributes code/title/status describe the fault kind; status is the
    exit status a front end should use.
    """
    code = Unset
    title = "dispatch error"
    status = 2

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __getattr__(self, name):
        if name.startswith("_") or name == "options":
            raise AttributeError(name)
        try:
            return self.options[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from None

    def __str__(self):
        return str(self.message) if self.message is not Unset else self.title

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        colorful = self.options.get("colorful", False)
        fancy = self.options.get("fancy", False)

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if isinstance(fragment, Text):
                return fragment if colorful else Text(fragment.plain)
            return Text(str(fragment), style)

        prog = text(program(self.options.get("prog", Unset)), styler("prog-name"))
        code = self.code.normalize() if isinstance(self.code, FaultCode) else "-"

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code, styler("code")),
            " | ",
            text(self.title.title(), styler("error-title")),
            " ]"
        )
        message = text(str(self), styler("error-message"))
        renders = [message]

        if hint := self.options.get("hint"):
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

        if fancy:
            width = console.width - 4
            return Panel(Group(*renders), title=header, title_align="left", width=width)

        return Group(header, *renders)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self
        self.options.get("console", console).print(self)
        sys.exit(self.status)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        fault = type(self)(self.message, **{**self.options, **overrides})
        fault.__cause__ = self.__cause__
        return fault


class DuplicateNameError(DispatchError, ValueError):
    code = FaultCode.DUPLICATE_NAME
    title = "duplicate name"


class CommandNotFoundError(DispatchError):
    code = FaultCode.COMMAND_NOT_FOUND
    title = "command not found"


class MissingSubcommandError(DispatchError):
    code = FaultCode.MISSING_SUBCOMMAND
    title = "missing subcommand"


class UnknownOptionError(DispatchError):
    code = FaultCode.UNKNOWN_OPTION
    title = "unknown option"


class InvalidOptionValueError(DispatchError):
    code = FaultCode.INVALID_OPTION_VALUE
    title = "invalid option value"


class MissingOptionError(DispatchError):
    code = FaultCode.MISSING_OPTION
    title = "missing option"


class DuplicateOptionError(DispatchError):
    code = FaultCode.DUPLICATE_OPTION
    title = "duplicated option"


class ActionError(DispatchError):
    """
    Wraps any failure raised by a command action or a middleware.

    The original exception is kept both as __cause__ and as the 'exception'
    context entry.
    """
    code = FaultCode.ACTION_FAILURE
    title = "action failure"
    status = 1


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see DispatchError).
    - options are merged into a copy of the fault via __replace__(**options)
      before triggering.
    - in shell mode the fault is rendered on stderr and the process exits with
      fault.status; otherwise the fault is raised.

    typical options
    - shell, fancy, colorful, prog, console, hint.
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
    "FaultCode",
    "DispatchError",
    "DuplicateNameError",
    "CommandNotFoundError",
    "MissingSubcommandError",
    "UnknownOptionError",
    "InvalidOptionValueError",
    "MissingOptionError",
    "DuplicateOptionError",
    "ActionError",
    "trigger",
)
