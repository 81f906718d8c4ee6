"""
Waypoint command definitions.

Overview
- CommandDefinition: immutable node of the command forest.
  • name: unique within its parent's scope (or among root commands).
  • description: one-line help text.
  • aliases: alternate names, unique across the whole registry.
  • options: ordered OptionDefinition objects accepted by this command.
  • subcommands: ordered child definitions, owned by this node only.
  • action: callable run on dispatch, or None for a router that requires a
    subcommand.

- command(): factory/decorator that derives a CommandDefinition from a callable
  (name from __name__ with "_" → "-", description from the docstring).

Example
    >>> @command(options=[OptionDefinition("verbose", alias="v")])
    ... def build(invocation):
    ...     "Build the project."
    >>> build.name, build.description
    ('build', 'Build the project.')
"""
import inspect
import re
from collections.abc import Iterable

from .faults import DuplicateNameError
from .options import OptionDefinition
from .utils import *

_NAME = re.compile(r"[^\W\d_](-?[^\W_]+)*")


def _process_names(cls, metadata):
    """
    Validate name and aliases.

    - name: trimmed, non-empty, dash-free word ("build", "dry-run").
    - aliases: iterable of such words, without duplicates and never repeating name.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    elif not _NAME.fullmatch(name):
        raise ValueError(f"{cls.__typename__} 'name' must be a valid shell-style command name (got {name!r})")
    metadata["name"] = name

    if isinstance(aliases := metadata["aliases"], str) or not isinstance(aliases, Iterable):
        raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")
    seen = {name}
    for alias in (aliases := tuple(aliases)):
        if not isinstance(alias, str):
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")
        elif not _NAME.fullmatch(alias):
            raise ValueError(f"{cls.__typename__} alias {alias!r} must be a valid shell-style command name")
        elif alias in seen:
            raise ValueError(f"{cls.__typename__} alias {alias!r} is already in use by {name!r}")
        seen.add(alias)
    metadata["aliases"] = aliases


def _process_options(cls, metadata):
    """
    Validate options: definitions only, with unique names and unique aliases.
    """
    if not isinstance(options := metadata["options"], Iterable):
        raise TypeError(f"{cls.__typename__} 'options' must be an iterable of option definitions")
    names = set()
    aliases = set()
    for option in (options := tuple(options)):
        if not isinstance(option, OptionDefinition):
            raise TypeError(f"{cls.__typename__} 'options' must be an iterable of option definitions")
        if option.name in names:
            raise ValueError(f"{cls.__typename__} option name {option.name!r} is already in use")
        names.add(option.name)
        if option.alias is None:
            continue
        if option.alias in aliases:
            raise ValueError(f"{cls.__typename__} option alias {option.alias!r} is already in use")
        aliases.add(option.alias)
    metadata["options"] = options


def _process_subcommands(cls, metadata):
    """
    Validate subcommands: definitions only, sibling names/aliases never collide.
    """
    if not isinstance(subcommands := metadata["subcommands"], Iterable):
        raise TypeError(f"{cls.__typename__} 'subcommands' must be an iterable of command definitions")
    seen = {}
    for subcommand in (subcommands := tuple(subcommands)):
        if not isinstance(subcommand, CommandDefinition):
            raise TypeError(f"{cls.__typename__} 'subcommands' must be an iterable of command definitions")
        for name in (subcommand.name, *subcommand.aliases):
            if name in seen:
                raise DuplicateNameError(
                    "subcommand name %r of %r is already in use by %r" % (name, metadata["name"], seen[name]),
                    name=name,
                    hint="rename one of the subcommands or drop the conflicting alias",
                )
            seen[name] = subcommand.name
    metadata["subcommands"] = subcommands


def _process_action(cls, metadata):
    if metadata["action"] is not None and not callable(metadata["action"]):
        raise TypeError(f"{cls.__typename__} 'action' must be callable")
    if metadata["action"] is None and not metadata["subcommands"]:
        raise ValueError(f"{cls.__typename__} {metadata['name']!r} needs an action or at least one subcommand")


class CommandDefinition(metaclass=DefinitionType):
    """
    Immutable node of the command forest.

    A command with an action is a leaf (it may still own subcommands); a command
    without one is a router and dispatch must descend into one of its children.
    """

    __introspectable__ = (
        "name",
        "description",
        "aliases",
        "options",
        "subcommands",
        "action",
    )
    __displayable__ = (
        "name",
        "description",
        "aliases",
        "options",
        "subcommands",
    )

    def __init__(
            self,
            name,
            /,
            description=Unset,
            *,
            aliases=(),
            options=(),
            subcommands=(),
            action=None
    ):
        if not isinstance(description, str | Unset):
            raise TypeError(f"{type(self).__typename__} 'description' must be a string")

        metadata = {
            "name": name,
            "description": coalesce(description, "").strip(),
            "aliases": aliases,
            "options": options,
            "subcommands": subcommands,
            "action": action,
        }

        _process_names(type(self), metadata)
        _process_options(type(self), metadata)
        _process_subcommands(type(self), metadata)
        _process_action(type(self), metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    @property
    def is_router(self):
        return self._action is None

    @property
    def names(self):
        """
        Name followed by every alias.
        """
        return (self._name, *self._aliases)

    def find_subcommand(self, token, /):
        """
        Return the child whose name or alias equals token, else None.
        """
        for subcommand in self._subcommands:
            if token == subcommand.name or token in subcommand.aliases:
                return subcommand
        return None

    def walk(self):
        """
        Yield this definition and every descendant, depth-first in declaration order.
        """
        yield self
        for subcommand in self._subcommands:
            yield from subcommand.walk()


def command(source=Unset, /, **kwargs):
    """
    Create a CommandDefinition from a callable, or return a decorator doing so.

    Invocation modes
    - Direct:     definition = command(func, name="x", ...)
    - Decorator:  @command(name="x", ...) on a function.

    Defaults
    - name: func.__name__ with underscores turned into dashes.
    - description: first paragraph of the function docstring.
    """
    @rename("command")
    def wrapper(action, /):
        if not callable(action):
            raise TypeError("@command() must be applied to a callable")

        options = dict(kwargs)
        name = options.pop("name", Unset)
        if name is Unset:
            name = getattr(action, "__name__", "").strip("_").replace("_", "-")

        description = options.pop("description", Unset)
        if description is Unset and (description := inspect.getdoc(action)):
            description = description.split("\n\n")[0].replace("\n", " ")

        return CommandDefinition(name, description or Unset, action=action, **options)

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    "CommandDefinition",
    "command",
)
