r"""
Waypoint option definitions and the option schema resolver.

Overview
- OptionDefinition: a typed, named option declared by a command.
  • name: long flag without dashes ("flag" → --flag).
  • alias: optional single character ("f" → -f).
  • type: "boolean" | "string" | "number" | "array".
  • default: value bound when the option is absent (boolean → False, others → None
    when nothing is declared).
  • description: short help text.
  • required: the option must be supplied when it has no default.

- OptionResolver: binds raw tokens against a command's option definitions and
  splits them into typed values and positionals.

Token grammar
- "--name", "--name=value", "-a", "-a=value", grouped short booleans "-abc".
- "-" alone is a positional; "--" ends option processing.
- Value-bearing options take the inline value or the next non-flag token.
- Booleans mean True by presence, unless an explicit literal follows
  ("--flag=false", or "--flag false").

Failures
- UnknownOptionError: the flag has no matching definition (never suggested).
- InvalidOptionValueError: coercion failed or no value was given.
- MissingOptionError: a required option was not supplied.
- DuplicateOptionError: the same option was supplied twice.
"""
import re
from types import MappingProxyType

from .faults import (
    UnknownOptionError,
    InvalidOptionValueError,
    MissingOptionError,
    DuplicateOptionError,
)
from .utils import *

TYPES = ("boolean", "string", "number", "array")

_TRUTHY = ("true", "1", "yes", "y")
_FALSY = ("false", "0", "no", "n")

_NUMBER = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_NAME = re.compile(r"[^\W\d_](-?[^\W_]+)*")


def _sanitize_option_metadata(cls, metadata, /):
    """
    Internal: validate and normalize option metadata in place.

    - name: dash-free word, e.g. "flag" or "log-level" (unicode letters allowed).
    - alias: Unset or a single letter/digit.
    - type: one of TYPES.
    - description: Unset or a non-empty string after trimming (becomes None).
    - default: a declared default wins; otherwise False for booleans and None
      for every other type.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    elif name.startswith("-"):
        raise ValueError(f"{cls.__typename__} 'name' must be given without dashes (e.g. 'flag' for --flag)")
    elif not _NAME.fullmatch(name):
        raise ValueError(f"{cls.__typename__} 'name' must be a valid shell-style option name")
    metadata["name"] = name

    if not isinstance(alias := metadata["alias"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'alias' must be a string")
    elif isinstance(alias, str) and (len(alias) != 1 or not alias.isalnum()):
        raise ValueError(f"{cls.__typename__} 'alias' must be a single character")
    metadata["alias"] = coalesce(alias)

    if metadata["type"] not in TYPES:
        raise ValueError(f"{cls.__typename__} 'type' must be one of {', '.join(map(repr, TYPES))}")

    if not isinstance(description := metadata["description"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'description' must be a string")
    elif isinstance(description, str) and not (description := description.strip()):
        raise ValueError(f"{cls.__typename__} 'description' cannot be empty")
    metadata["description"] = coalesce(description)

    if metadata["default"] is Unset:
        metadata["default"] = False if metadata["type"] == "boolean" else None
    elif isinstance(metadata["default"], list):
        metadata["default"] = tuple(metadata["default"])


class OptionDefinition(metaclass=DefinitionType):
    """
    Typed, named option declared by a command.

    Properties listed in __introspectable__ are read-only and mirror the
    sanitized metadata given at construction.
    """

    __introspectable__ = (
        "name",
        "alias",
        "type",
        "default",
        "description",
        "required",
    )

    def __init__(
            self,
            name,
            /,
            type="boolean",
            alias=Unset,
            default=Unset,
            description=Unset,
            *,
            required=False
    ):
        metadata = {
            "name": name,
            "alias": alias,
            "type": type,
            "default": default,
            "description": description,
            "required": bool(required),
        }
        _sanitize_option_metadata(self.__class__, metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    @property
    def flags(self):
        """
        Command-line spellings of this option, long form first.
        """
        return ("--" + self.name,) + (("-" + self.alias,) if self.alias else ())

    @property
    def valued(self):
        """
        Whether the option consumes a value (every type except boolean).
        """
        return self.type != "boolean"


def _parse_boolean(option, flag, raw):
    if (lowered := raw.lower()) in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise InvalidOptionValueError(
        "invalid value %r for option %r: expected a boolean" % (raw, flag),
        option=option,
        flag=flag,
        value=raw,
        hint="use one of: %s" % ", ".join(_TRUTHY + _FALSY),
    )


def coerce(option, raw, /, flag=Unset):
    """
    Convert a raw string into the option's declared type.

    - boolean: true/false/1/0/yes/no/y/n (case-insensitive).
    - string: verbatim.
    - number: base-10 decimal; int when integral, float otherwise.
    - array: comma-separated list of strings.
    """
    flag = coalesce(flag, "--" + option.name)
    match option.type:
        case "boolean":
            return _parse_boolean(option, flag, raw)
        case "number":
            if not _NUMBER.fullmatch(raw.strip()):
                raise InvalidOptionValueError(
                    "invalid value %r for option %r: expected a number" % (raw, flag),
                    option=option,
                    flag=flag,
                    value=raw,
                    hint="pass a base-10 number, for example: %s=42" % flag,
                )
            raw = raw.strip()
            if re.fullmatch(r"[+-]?\d+", raw):
                return int(raw)
            number = float(raw)
            # "1e3" is integral, "1.0" keeps the typed fraction
            return int(number) if "." not in raw and number.is_integer() else number
        case "array":
            return [item for item in raw.split(",")]
        case _:
            return raw


def _isflag(token):
    return token.startswith("-") and token != "-"


class OptionResolver:
    """
    Bind raw tokens against an ordered collection of OptionDefinition.

    The resolver is built once per command and is stateless across calls:
    bind() keeps its working state in locals only.
    """
    __slots__ = ("_options", "_names", "_aliases")

    def __init__(self, options=(), /):
        self._options = tuple(options)
        self._names = {}
        self._aliases = {}
        for option in self._options:
            if not isinstance(option, OptionDefinition):
                raise TypeError("option resolver expects option definitions")
            self._names[option.name] = option
            if option.alias:
                self._aliases[option.alias] = option

    @property
    def options(self):
        return self._options

    def lookup(self, flag, /):
        """
        Find the definition for a flag spelled "--name" or "-a", else None.
        """
        if flag.startswith("--"):
            return self._names.get(flag[2:])
        if flag.startswith("-"):
            return self._aliases.get(flag[1:])
        return None

    def _expand(self, token):
        """
        Split one flag token into [(flag, option, inline_value)] items.
        """
        flag, separator, inline = token.partition("=")
        inline = inline if separator else None

        if flag.startswith("--") or len(flag) == 2:
            if (option := self.lookup(flag)) is None:
                raise UnknownOptionError(
                    "unknown option %r" % flag,
                    flag=flag,
                    hint="remove it or check the command help for the accepted options",
                )
            return [(flag, option, inline)]

        # grouped short flags: -abc == -a -b -c
        items = []
        for index, letter in enumerate(letters := flag[1:]):
            if (option := self._aliases.get(letter)) is None:
                raise UnknownOptionError(
                    "unknown option %r in %r" % ("-" + letter, token),
                    flag="-" + letter,
                    hint="remove it or check the command help for the accepted options",
                )
            last = index == len(letters) - 1
            if option.valued and not last:
                raise InvalidOptionValueError(
                    "option %r expects a value and must end the group %r" % ("-" + letter, flag),
                    option=option,
                    flag="-" + letter,
                    hint="pass it separately, for example: -%s <value>" % letter,
                )
            items.append(("-" + letter, option, inline if last else None))
        return items

    def bind(self, tokens, /):
        """
        Bind tokens and return (values, positionals).

        values is a read-only mapping option name → typed value, containing every
        declared option (defaults fill the gaps); positionals is a tuple of the
        non-flag tokens in their original order.
        """
        tokens = list(tokens)
        values = {}
        positionals = []
        index = 0

        while index < len(tokens):
            token = tokens[index]
            index += 1

            if token == "--":
                positionals.extend(tokens[index:])
                break

            if not _isflag(token):
                positionals.append(token)
                continue

            for flag, option, inline in self._expand(token):
                if option.name in values:
                    raise DuplicateOptionError(
                        "option %r was already provided" % flag,
                        option=option,
                        flag=flag,
                        hint="keep a single %s; each option can be specified only once" % flag,
                    )

                following = tokens[index] if index < len(tokens) else None

                if not option.valued:
                    if inline is not None:
                        values[option.name] = _parse_boolean(option, flag, inline)
                    elif following is not None and following.lower() in ("true", "false"):
                        values[option.name] = following.lower() == "true"
                        index += 1
                    else:
                        values[option.name] = True
                    continue

                if inline is not None:
                    raw = inline
                elif following is not None and (not _isflag(following) or (
                        option.type == "number" and _NUMBER.fullmatch(following))):
                    raw = following
                    index += 1
                else:
                    raise InvalidOptionValueError(
                        "option %r expects a %s value" % (flag, option.type),
                        option=option,
                        flag=flag,
                        hint="pass it inline (%s=<value>) or after a space (%s <value>)" % (flag, flag),
                    )
                values[option.name] = coerce(option, raw, flag)

        for option in self._options:
            if option.name in values:
                continue
            if option.required and option.default is None:
                raise MissingOptionError(
                    "missing required option %r" % ("--" + option.name),
                    option=option,
                    flag="--" + option.name,
                    hint="add --%s <%s>" % (option.name, option.type),
                )
            default = option.default
            values[option.name] = list(default) if isinstance(default, tuple) else default

        return MappingProxyType(values), tuple(positionals)


__all__ = (
    "TYPES",
    "OptionDefinition",
    "OptionResolver",
    "coerce",
)
