"""Lazywire dependency injection registry.

Lazywire registers named factories together with the names of the modules they
depend on, and builds each module on first request. Every module is built at
most once: concurrent and later requests share the same object. Resolution is
asynchronous, so factories may themselves be coroutines.

Key Features:
    - Registration from bare callables (dependencies read from parameter names)
      or explicit ``[dependency, ..., factory]`` lists
    - Lazy, memoised, asyncio-based resolution with per-module deduplication
    - Cycle and missing-dependency detection before any factory runs
    - One-off injection into unregistered callables
    - Discovery of injectable classes and functions in source files by glob

Basic Usage:
    >>> from lazywire import Registry
    >>>
    >>> registry = Registry()
    >>> registry.register("settings", lambda: {"dsn": "sqlite://"})
    >>>
    >>> @registry.provides()
    >>> def make_database(settings):
    ...     return Database(settings["dsn"])
    >>>
    >>> db = await registry.resolve("database")

The package consists of several modules:
    - registry: The Registry and its resolution engine
    - domain: Module records and their resolution states
    - definitions: Definition parsing, dependency extraction, factory calls
    - cycles: Cycle detection over registered dependencies
    - discovery: File matching and injectable metadata
    - errors: Framework-specific exceptions
"""

from lazywire.cycles import find_cycle
from lazywire.definitions import extract_dependency_names
from lazywire.discovery import (
    LookupOptions,
    LookupResult,
    ModuleDescriptor,
    injectable,
)
from lazywire.domain import ModuleRecord, Resolved, Resolving, Unresolved
from lazywire.errors import (
    AlreadyRegisteredError,
    CyclicDependencyError,
    DependencyError,
    InvalidFactoryError,
    MissingDependenciesError,
    MissingModuleError,
    NotFoundError,
)
from lazywire.registry import Registry

__all__ = [
    "Registry",
    "ModuleRecord",
    "Unresolved",
    "Resolving",
    "Resolved",
    "injectable",
    "LookupOptions",
    "LookupResult",
    "ModuleDescriptor",
    "extract_dependency_names",
    "find_cycle",
    "DependencyError",
    "AlreadyRegisteredError",
    "NotFoundError",
    "InvalidFactoryError",
    "MissingModuleError",
    "MissingDependenciesError",
    "CyclicDependencyError",
]
