"""Domain models used throughout the registry."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from lazywire.errors import DependencyError

__all__ = ["Unresolved", "Resolving", "Resolved", "ModuleState", "ModuleRecord"]


@dataclass(frozen=True)
class Unresolved:
    """The module has been registered but nobody has asked for it yet."""


@dataclass(frozen=True)
class Resolving:
    """A build is in flight.

    Attributes:
        future: The pending result handed to every caller resolving the module
            until the build settles. If the build fails it stays here, failed.
    """

    future: asyncio.Future


@dataclass(frozen=True)
class Resolved:
    """The module has been built.

    Attributes:
        value: The factory's return value, shared by every consumer.
    """

    value: Any


ModuleState = Union[Unresolved, Resolving, Resolved]


@dataclass
class ModuleRecord:
    """A registered module and its resolution state.

    The factory and dependencies are fixed when the record is created; only
    ``state`` moves, and only forwards:
    ``Unresolved -> Resolving -> Resolved``.

    Attributes:
        name: Unique name of the module within its registry.
        factory: Callable invoked with the resolved dependencies, positionally.
        dependencies: Names of the modules passed to the factory, in order.
        state: Current resolution state.
    """

    name: str
    factory: Callable
    dependencies: tuple[str, ...]
    state: ModuleState = field(default_factory=Unresolved)

    def begin_resolving(self, future: asyncio.Future) -> None:
        if not isinstance(self.state, Unresolved):
            raise DependencyError(
                f"Module {self.name} cannot start resolving from {self.state}"
            )
        self.state = Resolving(future)

    def mark_resolved(self, value: Any) -> None:
        if not isinstance(self.state, Resolving):
            raise DependencyError(
                f"Module {self.name} cannot be resolved from {self.state}"
            )
        self.state = Resolved(value)
