from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from .errors import InvalidFormat

"""
router.py - turn one received line into a command the session can run.

A line is trimmed and split on whitespace: the first token is the verb, the
rest are positional arguments. Which verbs exist depends on the phase of the
session (before or after login); the table below is the single source of
truth for that, including argument counts and the admin-only flag.

Follow-up lines of a sub-dialogue never come through here; the session reads
them as free text.
"""


class Phase(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class UnknownCommand(InvalidFormat):
    """Verb is not legal in the current phase."""


class UsageError(InvalidFormat):
    """Verb is known but was given the wrong number of arguments."""

    def __init__(self, form: str) -> None:
        self.form = form
        super().__init__(f"Usage: {form}")


@dataclass(frozen=True)
class CommandSpec:
    verb: str
    params: Tuple[str, ...] = ()
    admin_only: bool = False

    @property
    def form(self) -> str:
        """Human usage line, e.g. 'reg <username> <password>'."""
        return " ".join([self.verb] + [f"<{p}>" for p in self.params])


@dataclass(frozen=True)
class Command:
    spec: CommandSpec
    args: Tuple[str, ...]

    @property
    def verb(self) -> str:
        return self.spec.verb


def _table(*specs: CommandSpec) -> Dict[str, CommandSpec]:
    return {s.verb: s for s in specs}


COMMANDS: Dict[Phase, Dict[str, CommandSpec]] = {
    Phase.UNAUTHENTICATED: _table(
        CommandSpec("reg", ("username", "password")),
        CommandSpec("log", ("username", "password")),
        CommandSpec("exit"),
    ),
    Phase.AUTHENTICATED: _table(
        CommandSpec("view-profile"),
        CommandSpec("my-blogs"),
        CommandSpec("apply-admin"),
        CommandSpec("exit"),
        CommandSpec("list-pending", admin_only=True),
        CommandSpec("list-users", admin_only=True),
        CommandSpec("delete-user", ("username",), admin_only=True),
    ),
}


def tokenize(line: str) -> List[str]:
    """Split a line into tokens; an empty/blank line is a format error."""
    tokens = line.split()
    if not tokens:
        raise InvalidFormat("Invalid command format.")
    return tokens


def lookup(phase: Phase, line: str) -> Tuple[CommandSpec, Tuple[str, ...]]:
    """
    Find the command spec for a line without checking its arguments, so the
    caller can apply permission checks before usage checks.

    Raises:
        InvalidFormat: blank line.
        UnknownCommand: verb not available in this phase.
    """
    verb, *args = tokenize(line)
    spec = COMMANDS[phase].get(verb)
    if spec is None:
        raise UnknownCommand(f"Unknown command: {verb}")
    return spec, tuple(args)


def bind(spec: CommandSpec, args: Tuple[str, ...]) -> Command:
    """Attach arguments to a spec; UsageError on the wrong count."""
    if len(args) != len(spec.params):
        raise UsageError(spec.form)
    return Command(spec, args)


def resolve(phase: Phase, line: str) -> Command:
    """lookup() then bind(), for callers with no permission step in between."""
    return bind(*lookup(phase, line))
