"""
Waypoint help rendering.

The renderer only reads definitions (name, description, options, subcommands)
and the registry; it never mutates them and holds no dispatch logic.

Layouts (plain form, colorful=False)

    Available Commands:
      build  Build the project
      test   Run the test-suite

    Use "prog <command> --help" for more information.

    Command: build

    Build the project

    Options:
      --release, -r  Optimize the output (default: false)

    Subcommands:
      docs  Build the documentation

    Usage:
      prog build <subcommand> [options]

Palette keys
- section-label, program-name, command-name, description
- option-name, option-description, default-value
- child-name, child-description, hint

Customization
- Define a mapping named __styles__ in __main__ to override any palette entry.
- When colorful is False, styling is suppressed entirely.
"""
from collections import defaultdict

from rich.console import Console
from rich.text import Text

from .commands import CommandDefinition
from .utils import *


def format_default(value):
    """
    Display a default value the way it would be typed on the command line.
    """
    match value:
        case bool():
            return "true" if value else "false"
        case list() | tuple():
            return ",".join(map(format_default, value))
        case _:
            return str(value)


class HelpRenderer:
    """
    Build help text for the root of a registry or for one of its commands.

    - render(command=None) -> rich Text
    - generate_help(command=None) -> str (plain text of render())
    - print_help(command=None, *, console=Unset) -> None
    """
    __slots__ = ("_registry", "_prog", "_colorful")

    def __init__(self, registry, /, *, prog=Unset, colorful=False):
        self._registry = registry
        self._prog = prog
        self._colorful = bool(colorful)

    @property
    def registry(self):
        return self._registry

    @property
    def prog(self):
        return program(self._prog)

    @property
    def colorful(self):
        return self._colorful

    def _styler(self):
        styles = defaultdict(str, {
            "section-label": "bold #FFFFFF",
            "program-name": "bold #FF4D94",
            "command-name": "bold #36C5F0",
            "description": "italic #A3A3A3",
            "option-name": "bold #00E6FF",
            "option-description": "#9CA3AF",
            "default-value": "#FFD600",
            "child-name": "bold #36C5F0",
            "child-description": "#9CA3AF",
            "hint": "#737373",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def styler(style):
            return styles[style] if self.colorful else ""

        return styler

    @staticmethod
    def _rows(text, rows, style):
        """
        Append "  <left>  <right>" lines with the left column padded to the widest.
        """
        width = max((len(left) for left, _ in rows), default=0)
        for left, right in rows:
            text.append("  ").append(left, style)
            if right:
                text.append(" " * (width - len(left) + 2)).append_text(right)
            text.append("\n")

    def _root(self, styler):
        text = Text()
        text.append("Available Commands", styler("section-label")).append(":\n")
        self._rows(text, [
            (definition.name, Text(definition.description, styler("child-description")))
            for definition in self._registry.commands
        ], styler("child-name"))
        text.append("\n")
        text.append("Use \"", styler("hint"))
        text.append(self.prog, styler("program-name"))
        text.append(" <command> --help\" for more information.", styler("hint"))
        text.append("\n")
        return text

    def _command(self, command, styler):
        text = Text()
        text.append("Command", styler("section-label")).append(": ")
        text.append(command.name, styler("command-name")).append("\n\n")

        if command.description:
            text.append(command.description, styler("description")).append("\n\n")

        if options := command.options:
            text.append("Options", styler("section-label")).append(":\n")
            rows = []
            for option in options:
                right = Text(option.description or "", styler("option-description"))
                if option.default is not None:
                    if right:
                        right.append(" ")
                    right.append("(default: ").append(format_default(option.default), styler("default-value")).append(")")
                rows.append((", ".join(option.flags), right))
            self._rows(text, rows, styler("option-name"))
            text.append("\n")

        if subcommands := command.subcommands:
            text.append("Subcommands", styler("section-label")).append(":\n")
            self._rows(text, [
                (subcommand.name, Text(subcommand.description, styler("child-description")))
                for subcommand in subcommands
            ], styler("child-name"))
            text.append("\n")

        # definitions carry no parent links: the route comes from the registry
        path = self._registry.locate(command) or (command,)
        text.append("Usage", styler("section-label")).append(":\n")
        text.append("  ").append(self.prog, styler("program-name")).append(" ")
        text.append(" ".join(step.name for step in path), styler("command-name"))
        if subcommands:
            text.append(" <subcommand>")
        if options:
            text.append(" [options]")
        text.append("\n")
        return text

    def render(self, command=None, /):
        """
        Return the help for command (or the root listing when None) as rich Text.
        """
        if command is not None and not isinstance(command, CommandDefinition):
            raise TypeError("render() argument must be a command definition or None")
        styler = self._styler()
        return self._root(styler) if command is None else self._command(command, styler)

    def generate_help(self, command=None, /):
        return self.render(command).plain

    def print_help(self, command=None, /, *, console=Unset):
        text = self.render(command)
        text.rstrip()
        coalesce(console, Console()).print(text)


__all__ = (
    "format_default",
    "HelpRenderer",
)
