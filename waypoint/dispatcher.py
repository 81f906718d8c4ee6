"""
Waypoint dispatcher: from an argument vector to a command action.

Flow (one invocation, strictly sequential)

    START → RESOLVING → RESOLVED   → EXECUTING  → DONE
                      ↘ UNRESOLVED → SUGGESTING ⇢ CommandNotFoundError

- RESOLVING: the leading non-flag tokens are the path candidates; the registry
  resolves them greedily (Registry.resolve_path).
- "help [command]" (with help flags on and no root command named help)
  prints the root listing or the matched command's help.
- RESOLVED: a router (no action) must have had a child selected, otherwise
  MissingSubcommandError is raised with near-matches among its children.
- SUGGESTING: the suggestion engine ranks the registry names against the
  first token and the resulting message becomes a CommandNotFoundError.
- EXECUTING: the remaining tokens are bound by the command's OptionResolver,
  middleware runs, then the action. Awaitables are awaited; failures are
  wrapped in ActionError.

Every DispatchError is logged at ERROR level and re-raised: the dispatcher never
prints faults and never exits. invoke() is the thin front end that does.

Example
    >>> registry = Registry()
    >>> @registry.command
    ... def hello(invocation):
    ...     invocation.console.print("hello!")
    >>> Dispatcher(registry).dispatch(["hello"])
"""
import asyncio
import enum
import inspect
import shlex
import sys
from collections.abc import Iterable

from rich.console import Console

from .faults import (
    DispatchError,
    CommandNotFoundError,
    MissingSubcommandError,
    ActionError,
    trigger,
)
from .help import HelpRenderer
from .logging import get_logger
from .options import OptionResolver
from .registry import Registry
from .suggestions import SuggestionEngine
from .utils import *

HELP_FLAGS = ("--help", "-h")


class DispatchState(enum.Enum):
    START = "start"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    EXECUTING = "executing"
    SUGGESTING = "suggesting"
    DONE = "done"


class ResolvedInvocation(metaclass=DefinitionType):
    """
    Everything an action (or a middleware) needs about the current dispatch.

    - path: matched definitions, root first; command is path[-1].
    - values: option name → typed value (every declared option is present).
    - positionals: non-flag tokens left after option binding.
    - dispatcher, logger, console: services injected by the dispatcher.
    """

    __introspectable__ = (
        "path",
        "values",
        "positionals",
        "dispatcher",
        "logger",
        "console",
    )
    __displayable__ = (
        "route",
        "values",
        "positionals",
    )

    def __init__(self, path, values, positionals, /, *, dispatcher=None, logger=None, console=None):
        if not (path := tuple(path)):
            raise ValueError(f"{type(self).__typename__} 'path' cannot be empty")
        self._path = path
        self._values = values
        self._positionals = tuple(positionals)
        self._dispatcher = dispatcher
        self._logger = logger
        self._console = console

    @property
    def command(self):
        return self._path[-1]

    @property
    def route(self):
        return " ".join(step.name for step in self._path)


async def _settle(result):
    if inspect.isawaitable(result):
        return await result
    return result


class _Session:
    """
    Per-invocation state holder; the dispatcher itself stays stateless.
    """
    __slots__ = ("state", "logger")

    def __init__(self, logger):
        self.state = DispatchState.START
        self.logger = logger

    def moveto(self, state):
        self.logger.debug("dispatch state: %s -> %s", self.state.name, state.name)
        self.state = state


class Dispatcher:
    """
    Map argument vectors onto the commands of a registry.

    Parameters
    - registry: Registry holding the command forest (read-only during dispatch).
    - prog: program name for usage lines and fault headers (see utils.program).
    - suggestions: SuggestionEngine used on unresolved input.
    - help: HelpRenderer used for --help/-h and exposed to actions.
    - logger: logging.Logger used for state transitions and failures.
    - console: rich Console handed to actions and used for help output.
    - help_flags: render help on --help/-h unless the command declares them.
    """
    __slots__ = (
        "_registry",
        "_prog",
        "_suggestions",
        "_help",
        "_logger",
        "_console",
        "_help_flags",
        "_middleware",
    )

    def __init__(
            self,
            registry,
            /,
            *,
            prog=Unset,
            suggestions=Unset,
            help=Unset,
            logger=Unset,
            console=Unset,
            help_flags=True
    ):
        if not isinstance(registry, Registry):
            raise TypeError("dispatcher 'registry' must be a registry")
        if not isinstance(suggestions := coalesce(suggestions, SuggestionEngine()), SuggestionEngine):
            raise TypeError("dispatcher 'suggestions' must be a suggestion engine")
        if not isinstance(help := coalesce(help, HelpRenderer(registry, prog=prog)), HelpRenderer):
            raise TypeError("dispatcher 'help' must be a help renderer")

        self._registry = registry
        self._prog = prog
        self._suggestions = suggestions
        self._help = help
        self._logger = coalesce(logger, get_logger("dispatcher"))
        self._console = coalesce(console, Console())
        self._help_flags = bool(help_flags)
        self._middleware = []

    @property
    def registry(self):
        return self._registry

    @property
    def prog(self):
        return program(self._prog)

    @property
    def suggestions(self):
        return self._suggestions

    @property
    def help(self):
        return self._help

    @property
    def logger(self):
        return self._logger

    @property
    def console(self):
        return self._console

    @property
    def middleware(self):
        return tuple(self._middleware)

    def use(self, middleware, /):
        """
        Register a middleware run with the invocation before every action.

        Returns the middleware, so this doubles as a decorator.
        """
        if not callable(middleware):
            raise TypeError("use() argument must be callable")
        self._middleware.append(middleware)
        return middleware

    def _wants_help(self, command, tokens):
        if not self._help_flags:
            return False
        if command is not None and any(
            option.name == "help" or option.alias == "h" for option in command.options
        ):
            return False
        for token in tokens:
            if token == "--":
                return False
            if token in HELP_FLAGS:
                return True
        return False

    def _resolve(self, session, tokens):
        session.moveto(DispatchState.RESOLVING)

        count = 0
        while count < len(tokens) and not tokens[count].startswith("-"):
            count += 1

        if not count:
            session.moveto(DispatchState.UNRESOLVED)
            raise MissingSubcommandError(
                "no command given",
                route="",
                input=None,
                suggestions=(),
                hint='run "%s --help" to list the available commands' % self.prog,
            )

        if (resolution := self._registry.resolve_path(tokens[:count])) is None:
            self._unresolved(session, tokens[0])

        session.moveto(DispatchState.RESOLVED)
        return resolution.path, resolution.remainder, tuple(tokens[count:])

    def _unresolved(self, session, input):
        session.moveto(DispatchState.UNRESOLVED)
        session.moveto(DispatchState.SUGGESTING)
        candidates = self._registry.names(include_aliases=self._suggestions.include_aliases)
        suggestions = self._suggestions.find_similar_commands(input, candidates)
        raise CommandNotFoundError(
            self._suggestions.generate_suggestion_message(input, candidates),
            input=input,
            suggestions=tuple(suggestions),
            hint='run "%s --help" to list the available commands' % self.prog,
        )

    def _help_command(self, session, tokens):
        """
        "prog help [command...]": root listing, or the help of the deepest match.
        """
        session.moveto(DispatchState.RESOLVING)
        targets = []
        for token in tokens:
            if token.startswith("-"):
                break
            targets.append(token)

        command = None
        if targets:
            if (resolution := self._registry.resolve_path(targets)) is None:
                self._unresolved(session, targets[0])
            session.moveto(DispatchState.RESOLVED)
            command = resolution.command

        self._help.print_help(command, console=self._console)
        session.moveto(DispatchState.DONE)

    def _require_subcommand(self, path, remainder):
        command = path[-1]
        route = " ".join(step.name for step in path)
        input = remainder[0] if remainder else None

        suggestions = ()
        if input is not None:
            candidates = []
            for subcommand in command.subcommands:
                candidates.extend(subcommand.names if self._suggestions.include_aliases else (subcommand.name,))
            suggestions = tuple(self._suggestions.find_similar_commands(input, candidates))

        if suggestions:
            hint = "did you mean: %s?" % ", ".join(suggestions)
        else:
            hint = 'run "%s %s --help" to list its subcommands' % (self.prog, route)

        raise MissingSubcommandError(
            "unknown subcommand %r for %r" % (input, route) if input is not None else "%r requires a subcommand" % route,
            route=route,
            input=input,
            suggestions=suggestions,
            hint=hint,
        )

    async def _execute(self, session, path, tokens):
        session.moveto(DispatchState.EXECUTING)
        command = path[-1]

        values, positionals = OptionResolver(command.options).bind(tokens)
        invocation = ResolvedInvocation(
            path,
            values,
            positionals,
            dispatcher=self,
            logger=self._logger,
            console=self._console,
        )

        try:
            for middleware in self._middleware:
                await _settle(middleware(invocation))
            result = await _settle(command.action(invocation))
        except Exception as exception:
            raise ActionError(
                "command %r failed: %s" % (invocation.route, str(exception) or type(exception).__name__),
                route=invocation.route,
                exception=exception,
            ) from exception

        session.moveto(DispatchState.DONE)
        return result

    async def _run(self, argv):
        if isinstance(argv, str) or not isinstance(argv, Iterable):
            raise TypeError("run_command() argument must be an iterable of strings")
        tokens = list(argv)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("run_command() argument must be an iterable of strings")

        session = _Session(self._logger)

        # "prog --help" with no command lists every root command
        if (not tokens or tokens[0].startswith("-")) and self._wants_help(None, tokens):
            self._help.print_help(console=self._console)
            session.moveto(DispatchState.DONE)
            return None

        # "prog help [command]" unless a root command claims the name
        if self._help_flags and tokens and tokens[0] == "help" and self._registry.find_command("help") is None:
            self._help_command(session, tokens[1:])
            return None

        path, remainder, rest = self._resolve(session, tokens)

        if self._wants_help(path[-1], remainder + rest):
            self._help.print_help(path[-1], console=self._console)
            session.moveto(DispatchState.DONE)
            return None

        if path[-1].is_router:
            self._require_subcommand(path, remainder)

        return await self._execute(session, path, remainder + rest)

    async def run_command(self, argv, /):
        """
        Dispatch argv (program name excluded) and return the action's result.

        Raises the DispatchError subclass describing the failure after logging it
        at ERROR level; TypeError when argv is not an iterable of strings.
        """
        try:
            return await self._run(argv)
        except DispatchError as fault:
            self._logger.error("command execution failed: %s", fault)
            raise

    def dispatch(self, argv, /):
        """
        Synchronous run_command(): runs the dispatch in a fresh event loop.
        """
        return asyncio.run(self.run_command(argv))


def _tokenize(prompt):
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = list(prompt)
        for token in tokens:
            if not isinstance(token, str):
                raise TypeError("invoke() prompt must be a string or an iterable of strings")
        return tokens
    raise TypeError("invoke() prompt must be a string or an iterable of strings")


def invoke(dispatcher, prompt=Unset, /, *, shell=True, colorful=True, fancy=False):
    """
    Front-end runner: dispatch a prompt and surface faults.

    Parameters
    - dispatcher: Dispatcher to run.
    - prompt:
      • Unset: read tokens from sys.argv[1:].
      • str: shell-like string, split via shlex.split.
      • Iterable[str]: pre-tokenized sequence.
    - shell: on a DispatchError, render it to stderr and exit with the fault's
      status (2 for usage errors, 1 for action failures); when False the fault
      is re-raised instead.
    - colorful, fancy: fault rendering options (see DispatchError.__rich__).

    Returns the action's result.
    """
    if not isinstance(dispatcher, Dispatcher):
        raise TypeError("invoke() first argument must be a dispatcher")

    try:
        return dispatcher.dispatch(_tokenize(prompt))
    except DispatchError as fault:
        trigger(fault, shell=shell, colorful=colorful, fancy=fancy, prog=dispatcher.prog)


__all__ = (
    "HELP_FLAGS",
    "DispatchState",
    "ResolvedInvocation",
    "Dispatcher",
    "invoke",
)
