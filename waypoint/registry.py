"""
Waypoint command registry.

Scope
- Owns the root commands of the forest in registration order.
- Enforces name uniqueness among root commands and alias uniqueness across the
  entire registry, at registration time (DuplicateNameError).
- Resolves a command path from leading tokens (resolve_path) and maps a
  definition back to its path (locate), since definitions hold no parent links.

Lookups are exact, case-sensitive string matches. The registry is only mutated
during setup; dispatch never writes to it.
"""
from collections import namedtuple

from .commands import CommandDefinition, command
from .faults import DuplicateNameError
from .logging import get_logger
from .utils import *

logger = get_logger("registry")


class Resolution(namedtuple("Resolution", ("path", "remainder"))):
    """
    Result of Registry.resolve_path.

    - path: tuple of matched definitions, root first.
    - remainder: tuple of the tokens left after the deepest match.
    """
    __slots__ = ()

    @property
    def command(self):
        return self.path[-1]


class Registry:
    """
    Container of root command definitions.

    Example
        >>> registry = Registry()
        >>> @registry.command(aliases=["t"])
        ... def test(invocation): ...
        >>> registry.find_command("t") is test
        True
    """
    __slots__ = ("_commands", "_aliases")

    def __init__(self, commands=(), /):
        self._commands = {}  # root name -> definition
        self._aliases = {}   # alias anywhere in the forest -> owning definition
        for definition in commands:
            self.register(definition)

    def __repr__(self):
        return "registry(%s)" % ", ".join(map(repr, self._commands))

    def __len__(self):
        return len(self._commands)

    def __iter__(self):
        return iter(tuple(self._commands.values()))

    def __contains__(self, name):
        return self.find_command(name) is not None

    @property
    def commands(self):
        return tuple(self._commands.values())

    def register(self, definition, /):
        """
        Insert a root command and return it.

        Raises DuplicateNameError when the name or an alias is already a root
        name/alias, or when any alias of the new subtree is already registered
        anywhere (or repeated inside the subtree).
        """
        if not isinstance(definition, CommandDefinition):
            raise TypeError("register() argument must be a command definition")

        for name in definition.names:
            if self.find_command(name) is not None:
                raise DuplicateNameError(
                    "command name %r is already registered" % name,
                    name=name,
                    hint="rename the command or drop the conflicting alias",
                )

        aliases = {}
        for node in definition.walk():
            for alias in node.aliases:
                if alias in self._aliases or alias in aliases:
                    owner = self._aliases.get(alias) or aliases[alias]
                    raise DuplicateNameError(
                        "alias %r of %r is already used by %r" % (alias, node.name, owner.name),
                        name=alias,
                        hint="aliases must be unique across every registered command",
                    )
                aliases[alias] = node

        self._commands[definition.name] = definition
        self._aliases.update(aliases)
        logger.debug("registered command %r (aliases: %s)", definition.name, ", ".join(definition.aliases) or "-")
        return definition

    def command(self, source=Unset, /, **kwargs):
        """
        Build a definition with waypoint.commands.command and register it.

        Works both directly (registry.command(func, ...)) and as a decorator
        (@registry.command(...)). The decorated name is bound to the definition.
        """
        @rename("command")
        def wrapper(action, /):
            return self.register(command(action, **kwargs))

        return wrapper(source) if source is not Unset else wrapper

    def find_command(self, name, /):
        """
        Return the root definition whose name or alias is name, else None.
        """
        if (definition := self._commands.get(name)) is not None:
            return definition
        for definition in self._commands.values():
            if name in definition.aliases:
                return definition
        return None

    def resolve_path(self, tokens, /):
        """
        Greedily match tokens against the forest.

        The first token selects a root command; every following token descends
        into a child while one matches by name or alias. Returns Resolution(path,
        remainder), or None when the first token matches no root command.
        """
        tokens = tuple(tokens)
        if not tokens or (current := self.find_command(tokens[0])) is None:
            return None

        path = [current]
        index = 1
        while index < len(tokens) and (child := current.find_subcommand(tokens[index])) is not None:
            path.append(current := child)
            index += 1

        return Resolution(tuple(path), tokens[index:])

    def locate(self, definition, /):
        """
        Return the path (root first) leading to definition, or None if it is not
        part of this registry.
        """
        def _search(node, trail):
            trail = trail + (node,)
            if node is definition:
                return trail
            for child in node.subcommands:
                if (found := _search(child, trail)) is not None:
                    return found
            return None

        for root in self._commands.values():
            if (path := _search(root, ())) is not None:
                return path
        return None

    def names(self, include_aliases=True):
        """
        Root names, each followed by its aliases when include_aliases is true.
        """
        names = []
        for definition in self._commands.values():
            names.extend(definition.names if include_aliases else (definition.name,))
        return names

    def remove(self, name, /):
        """
        Remove the root command called name (or aliased name) with its subtree.

        Returns True when something was removed, False otherwise.
        """
        if (definition := self.find_command(name)) is None:
            return False
        del self._commands[definition.name]
        for node in definition.walk():
            for alias in node.aliases:
                self._aliases.pop(alias, None)
        logger.debug("removed command %r", definition.name)
        return True

    def clear(self):
        self._commands.clear()
        self._aliases.clear()


__all__ = (
    "Resolution",
    "Registry",
)
