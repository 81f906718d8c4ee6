"""
Dispatcher module tests (resolution, execution, faults, logging, front end).

Scope
- Sequential dispatch of independent commands without logged errors.
- Unresolved input: suggestion messages and CommandNotFoundError context.
- Routers: MissingSubcommandError with near-matches.
- Options, positionals, middleware and async actions.
- ActionError wrapping and ERROR-level logging of every fault.
- --help/-h handling and invoke() exit statuses.

Conventions
- Test method names follow CamelCase per project convention.
- Coroutine dispatch uses IsolatedAsyncioTestCase.
"""

from __future__ import annotations

import asyncio
import io
import logging
import unittest
from unittest import IsolatedAsyncioTestCase, TestCase

from rich.console import Console

from waypoint import (
    CommandDefinition,
    OptionDefinition,
    Registry,
    Dispatcher,
    DispatchState,
    ResolvedInvocation,
    SuggestionEngine,
    invoke,
)
from waypoint.faults import (
    CommandNotFoundError,
    MissingSubcommandError,
    UnknownOptionError,
    InvalidOptionValueError,
    ActionError,
)


def quiet_console():
    return Console(file=io.StringIO(), width=100)


class TestDispatch(IsolatedAsyncioTestCase):

    def setUp(self):
        self.calls = []
        self.registry = Registry()
        self.dispatcher = Dispatcher(self.registry, prog="stega", console=quiet_console())

    def recorder(self, name):
        def action(invocation):
            self.calls.append(name)
            return name
        return action

    async def testSequentialCommandsRunInOrder(self):
        self.registry.register(CommandDefinition("first", action=self.recorder("first")))
        self.registry.register(CommandDefinition("second", action=self.recorder("second")))
        with self.assertNoLogs("waypoint", level="ERROR"):
            await self.dispatcher.run_command(["first"])
            await self.dispatcher.run_command(["second"])
        self.assertEqual(self.calls, ["first", "second"])

    async def testActionResultIsReturned(self):
        self.registry.register(CommandDefinition("first", action=self.recorder("first")))
        self.assertEqual(await self.dispatcher.run_command(["first"]), "first")

    async def testInvocationCarriesOptionsAndPositionals(self):
        seen = []
        self.registry.register(CommandDefinition("copy", options=[
            OptionDefinition("force", alias="f"),
            OptionDefinition("mode", "string", default="fast"),
        ], action=seen.append))

        await self.dispatcher.run_command(["copy", "a.txt", "-f", "b.txt"])

        invocation, = seen
        self.assertIsInstance(invocation, ResolvedInvocation)
        self.assertEqual(invocation.command.name, "copy")
        self.assertEqual(invocation.route, "copy")
        self.assertEqual(invocation.values, {"force": True, "mode": "fast"})
        self.assertEqual(invocation.positionals, ("a.txt", "b.txt"))
        self.assertIs(invocation.dispatcher, self.dispatcher)
        self.assertIs(invocation.console, self.dispatcher.console)
        self.assertIs(invocation.logger, self.dispatcher.logger)

    async def testNestedSubcommandsResolveThroughAliases(self):
        seen = []
        self.registry.register(CommandDefinition("remote", aliases=["r"], subcommands=[
            CommandDefinition("add", aliases=["a"], action=seen.append),
        ]))
        await self.dispatcher.run_command(["r", "a", "origin"])
        self.assertEqual(seen[0].route, "remote add")
        self.assertEqual(seen[0].positionals, ("origin",))

    async def testAsyncActionIsAwaited(self):
        async def action(invocation):
            await asyncio.sleep(0)
            return "done"

        self.registry.register(CommandDefinition("wait", action=action))
        self.assertEqual(await self.dispatcher.run_command(["wait"]), "done")

    async def testMiddlewareRunsBeforeActionInOrder(self):
        order = []

        @self.dispatcher.use
        def first(invocation):
            order.append("first:" + invocation.route)

        @self.dispatcher.use
        async def second(invocation):
            order.append("second")

        self.registry.register(CommandDefinition("go", action=lambda invocation: order.append("action")))
        await self.dispatcher.run_command(["go"])
        self.assertEqual(order, ["first:go", "second", "action"])
        self.assertEqual(self.dispatcher.middleware, (first, second))

    async def testUnknownCommandSuggestsNearMatches(self):
        self.registry.register(CommandDefinition("test", action=self.recorder("test")))
        self.registry.register(CommandDefinition("build", action=self.recorder("build")))
        self.registry.register(CommandDefinition("deploy", action=self.recorder("deploy")))
        with self.assertLogs("waypoint", level="ERROR") as logs:
            with self.assertRaises(CommandNotFoundError) as context:
                await self.dispatcher.run_command(["tets"])
        self.assertEqual(context.exception.input, "tets")
        self.assertEqual(context.exception.suggestions, ("test",))
        self.assertEqual(str(context.exception), 'Command "tets" not found. Did you mean:\n    test')
        self.assertIn("command execution failed", logs.output[0])
        self.assertEqual(self.calls, [])

    async def testUnknownCommandWithoutNearMatches(self):
        self.registry.register(CommandDefinition("test", action=self.recorder("test")))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(CommandNotFoundError) as context:
                await self.dispatcher.run_command(["zzzzzz"])
        self.assertEqual(str(context.exception), 'Command "zzzzzz" not found. No similar commands found.')
        self.assertEqual(context.exception.suggestions, ())

    async def testAliasesJoinTheSuggestionPool(self):
        self.registry.register(CommandDefinition("install", aliases=["add"], action=self.recorder("install")))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(CommandNotFoundError) as context:
                await self.dispatcher.run_command(["ad"])
        self.assertIn("add", context.exception.suggestions)

        dispatcher = Dispatcher(
            self.registry,
            suggestions=SuggestionEngine(include_aliases=False),
            console=quiet_console(),
        )
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(CommandNotFoundError) as context:
                await dispatcher.run_command(["ad"])
        self.assertNotIn("add", context.exception.suggestions)

    async def testRouterWithoutSubcommandFails(self):
        self.registry.register(CommandDefinition("remote", subcommands=[
            CommandDefinition("add", action=self.recorder("add")),
            CommandDefinition("remove", action=self.recorder("remove")),
        ]))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(MissingSubcommandError) as context:
                await self.dispatcher.run_command(["remote"])
        self.assertEqual(context.exception.route, "remote")
        self.assertIsNone(context.exception.input)

    async def testRouterWithMistypedSubcommandSuggests(self):
        self.registry.register(CommandDefinition("remote", subcommands=[
            CommandDefinition("add", action=self.recorder("add")),
            CommandDefinition("remove", action=self.recorder("remove")),
        ]))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(MissingSubcommandError) as context:
                await self.dispatcher.run_command(["remote", "remve"])
        self.assertEqual(context.exception.input, "remve")
        self.assertEqual(context.exception.suggestions[0], "remove")
        self.assertEqual(self.calls, [])

    async def testLeafWithChildrenTreatsStrayTokenAsPositional(self):
        seen = []
        self.registry.register(CommandDefinition("parent", subcommands=[
            CommandDefinition("child", action=self.recorder("child")),
        ], action=seen.append))
        await self.dispatcher.run_command(["parent", "other"])
        self.assertEqual(seen[0].positionals, ("other",))

    async def testEmptyArgvIsMissingSubcommand(self):
        self.registry.register(CommandDefinition("test", action=self.recorder("test")))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(MissingSubcommandError) as context:
                await self.dispatcher.run_command([])
        self.assertEqual(context.exception.route, "")

    async def testOptionFaultsPropagate(self):
        self.registry.register(CommandDefinition("run", options=[
            OptionDefinition("count", "number"),
        ], action=self.recorder("run")))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(UnknownOptionError):
                await self.dispatcher.run_command(["run", "--cuont", "3"])
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(InvalidOptionValueError):
                await self.dispatcher.run_command(["run", "--count", "three"])
        self.assertEqual(self.calls, [])

    async def testActionFailureIsWrapped(self):
        def action(invocation):
            raise RuntimeError("disk full")

        self.registry.register(CommandDefinition("save", action=action))
        with self.assertLogs("waypoint", level="ERROR") as logs:
            with self.assertRaises(ActionError) as context:
                await self.dispatcher.run_command(["save"])
        self.assertIsInstance(context.exception.__cause__, RuntimeError)
        self.assertIs(context.exception.exception, context.exception.__cause__)
        self.assertIn("disk full", logs.output[0])

    async def testMiddlewareFailureIsWrapped(self):
        self.dispatcher.use(lambda invocation: 1 / 0)
        self.registry.register(CommandDefinition("go", action=self.recorder("go")))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(ActionError) as context:
                await self.dispatcher.run_command(["go"])
        self.assertIsInstance(context.exception.__cause__, ZeroDivisionError)
        self.assertEqual(self.calls, [])

    async def testDispatchErrorFromActionIsWrapped(self):
        def serve(invocation):
            raise InvalidOptionValueError("port must be below 65536")

        self.registry.register(CommandDefinition("serve", action=serve))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(ActionError) as context:
                await self.dispatcher.run_command(["serve"])
        self.assertIsInstance(context.exception.__cause__, InvalidOptionValueError)
        self.assertIs(context.exception.exception, context.exception.__cause__)
        self.assertEqual(context.exception.route, "serve")

    async def testDispatchErrorFromMiddlewareIsWrapped(self):
        @self.dispatcher.use
        def deny(invocation):
            raise CommandNotFoundError("blocked")

        self.registry.register(CommandDefinition("go", action=self.recorder("go")))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(ActionError) as context:
                await self.dispatcher.run_command(["go"])
        self.assertIsInstance(context.exception.__cause__, CommandNotFoundError)
        self.assertEqual(self.calls, [])

    async def testStateTransitionsAreLoggedAtDebug(self):
        self.registry.register(CommandDefinition("first", action=self.recorder("first")))
        with self.assertLogs("waypoint.dispatcher", level="DEBUG") as logs:
            await self.dispatcher.run_command(["first"])
        transitions = [record.getMessage() for record in logs.records]
        self.assertEqual(transitions, [
            "dispatch state: START -> RESOLVING",
            "dispatch state: RESOLVING -> RESOLVED",
            "dispatch state: RESOLVED -> EXECUTING",
            "dispatch state: EXECUTING -> DONE",
        ])

    async def testUnresolvedTransitions(self):
        with self.assertLogs("waypoint.dispatcher", level="DEBUG") as logs:
            with self.assertRaises(CommandNotFoundError):
                await self.dispatcher.run_command(["nothing"])
        messages = [record.getMessage() for record in logs.records]
        self.assertIn("dispatch state: RESOLVING -> UNRESOLVED", messages)
        self.assertIn("dispatch state: UNRESOLVED -> SUGGESTING", messages)
        self.assertEqual(logs.records[-1].levelno, logging.ERROR)

    async def testNonStringArgvRejected(self):
        with self.assertRaises(TypeError):
            await self.dispatcher.run_command(["first", 1])  # type: ignore[list-item]
        with self.assertRaises(TypeError):
            await self.dispatcher.run_command("first")  # type: ignore[arg-type]

    async def testHelpFlagRendersCommandHelp(self):
        stream = io.StringIO()
        dispatcher = Dispatcher(self.registry, prog="stega", console=Console(file=stream, width=100))
        self.registry.register(CommandDefinition("build", "Build it", action=self.recorder("build")))
        self.assertIsNone(await dispatcher.run_command(["build", "--help"]))
        self.assertIn("Command: build", stream.getvalue())
        self.assertEqual(self.calls, [])

    async def testHelpFlagOnRouter(self):
        stream = io.StringIO()
        dispatcher = Dispatcher(self.registry, prog="stega", console=Console(file=stream, width=100))
        self.registry.register(CommandDefinition("remote", subcommands=[
            CommandDefinition("add", "Add a remote", action=self.recorder("add")),
        ]))
        await dispatcher.run_command(["remote", "-h"])
        self.assertIn("stega remote <subcommand>", stream.getvalue())

    async def testRootHelpFlag(self):
        stream = io.StringIO()
        dispatcher = Dispatcher(self.registry, prog="stega", console=Console(file=stream, width=100))
        self.registry.register(CommandDefinition("build", "Build it", action=self.recorder("build")))
        await dispatcher.run_command(["--help"])
        self.assertIn("Available Commands:", stream.getvalue())

    async def testDeclaredHelpOptionWins(self):
        seen = []
        self.registry.register(CommandDefinition("topic", options=[
            OptionDefinition("help", "string"),
        ], action=seen.append))
        await self.dispatcher.run_command(["topic", "--help", "git"])
        self.assertEqual(seen[0].values["help"], "git")

    async def testHelpFlagsCanBeDisabled(self):
        dispatcher = Dispatcher(self.registry, help_flags=False, console=quiet_console())
        self.registry.register(CommandDefinition("build", action=self.recorder("build")))
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(UnknownOptionError):
                await dispatcher.run_command(["build", "--help"])


class TestHelpCommand(IsolatedAsyncioTestCase):

    def setUp(self):
        self.calls = []
        self.stream = io.StringIO()
        self.registry = Registry()
        self.registry.register(CommandDefinition("build", "Build it", options=[
            OptionDefinition("release", alias="r", description="Optimize the output"),
        ], action=self.calls.append))
        self.registry.register(CommandDefinition("remote", "Manage remotes", subcommands=[
            CommandDefinition("add", "Add a remote", action=self.calls.append),
        ]))
        self.dispatcher = Dispatcher(self.registry, prog="stega", console=Console(file=self.stream, width=100))

    async def testHelpAloneListsRootCommands(self):
        self.assertIsNone(await self.dispatcher.run_command(["help"]))
        output = self.stream.getvalue()
        self.assertIn("Available Commands:", output)
        self.assertIn("build", output)
        self.assertIn("remote", output)

    async def testHelpForCommand(self):
        self.assertIsNone(await self.dispatcher.run_command(["help", "build"]))
        output = self.stream.getvalue()
        self.assertIn("Command: build", output)
        self.assertIn("--release, -r", output)
        self.assertEqual(self.calls, [])

    async def testHelpForNestedCommand(self):
        await self.dispatcher.run_command(["help", "remote", "add"])
        output = self.stream.getvalue()
        self.assertIn("Command: add", output)
        self.assertIn("stega remote add", output)

    async def testHelpForUnknownCommandSuggests(self):
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(CommandNotFoundError) as context:
                await self.dispatcher.run_command(["help", "biuld"])
        self.assertEqual(context.exception.input, "biuld")
        self.assertEqual(context.exception.suggestions, ("build",))
        self.assertEqual(self.stream.getvalue(), "")

    async def testRegisteredHelpCommandWins(self):
        seen = []
        self.registry.register(CommandDefinition("help", action=seen.append))
        await self.dispatcher.run_command(["help", "build"])
        self.assertEqual(seen[0].positionals, ("build",))
        self.assertEqual(self.stream.getvalue(), "")

    async def testHelpCommandDisabledWithHelpFlags(self):
        dispatcher = Dispatcher(self.registry, help_flags=False, console=quiet_console())
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(CommandNotFoundError):
                await dispatcher.run_command(["help", "build"])


class TestSynchronousFrontEnd(TestCase):

    def setUp(self):
        self.registry = Registry()
        self.registry.register(CommandDefinition("hello", options=[
            OptionDefinition("name", "string", default="world"),
        ], action=lambda invocation: "hello " + invocation.values["name"]))
        self.dispatcher = Dispatcher(self.registry, prog="stega", console=quiet_console())

    def testDispatch(self):
        self.assertEqual(self.dispatcher.dispatch(["hello", "--name", "you"]), "hello you")

    def testInvokeSplitsStrings(self):
        self.assertEqual(invoke(self.dispatcher, "hello --name 'big world'"), "hello big world")

    def testInvokeReRaisesOutsideShell(self):
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(CommandNotFoundError):
                invoke(self.dispatcher, ["helo"], shell=False)

    def testInvokeExitsInShellMode(self):
        with self.assertLogs("waypoint", level="ERROR"):
            with self.assertRaises(SystemExit) as context:
                invoke(self.dispatcher, ["helo"], shell=True, colorful=False)
        self.assertEqual(context.exception.code, 2)

    def testInvokeRejectsNonStringTokens(self):
        with self.assertRaises(TypeError):
            invoke(self.dispatcher, ["hello", None])  # type: ignore[list-item]

    def testInvokeRequiresDispatcher(self):
        with self.assertRaises(TypeError):
            invoke(self.registry)  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
