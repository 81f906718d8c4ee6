import logging

from rich.pretty import pprint

from waypoint import *

__prog__ = "demo"

registry = Registry()


@registry.command(aliases=["t"], options=[
    OptionDefinition("verbose", alias="v", description="Print every test name"),
    OptionDefinition("workers", "number", alias="w", default=1, description="Parallel workers"),
])
def test(invocation):
    """Run the test-suite."""
    pprint(invocation)


@registry.command(options=[
    OptionDefinition("target", "string", alias="t", required=True, description="Deployment target"),
    OptionDefinition("tags", "array", description="Release tags"),
])
async def deploy(invocation):
    """Deploy the current build."""
    invocation.console.print(f"deploying to {invocation.values['target']}")


registry.register(CommandDefinition("remote", "Manage remotes", subcommands=[
    command(lambda invocation: pprint(invocation.positionals), name="add", description="Add a remote"),
    command(lambda invocation: pprint(invocation.positionals), name="remove", aliases=["rm"], description="Remove a remote"),
]))


if __name__ == '__main__':
    configure_logging(logging.INFO)
    invoke(Dispatcher(registry), fancy=True)
