"""
The module registry and its resolution engine.

A ``Registry`` maps names to ``ModuleRecord`` objects. Resolving a name builds
its dependencies first, then calls the module's factory with their values, and
keeps the result: every later request for the name, concurrent or not, gets the
same object.

All resolution methods return ``asyncio.Future`` objects and must be called
from code running in an event loop. The move from ``Unresolved`` to
``Resolving`` happens without yielding to the loop, so concurrent requests for
a module share a single build.
"""

import asyncio
from typing import Any, Callable, Iterable, Optional, Sequence, Union

import structlog

from lazywire.cycles import find_cycle
from lazywire.definitions import inferred_name, invoke_factory, parse_definition
from lazywire.discovery import LookupOptions, LookupResult, find_files, lookup_file
from lazywire.domain import ModuleRecord, Resolved, Resolving
from lazywire.errors import (
    AlreadyRegisteredError,
    CyclicDependencyError,
    MissingDependenciesError,
    MissingModuleError,
    NotFoundError,
)

__all__ = ["Registry"]

logger = structlog.get_logger()


class Registry:
    """Registry of lazily built, shared modules.

    Example:
        >>> registry = Registry()
        >>> registry.register("a", lambda: 1)
        >>> registry.register("b", ["a", lambda a: a + 1])
        >>> await registry.resolve("b")
        2
    """

    def __init__(self):
        self._modules: dict[str, ModuleRecord] = {}

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def register(self, name: str, definition: Any) -> None:
        """Register a module without building it.

        Args:
            name: Unique module name.
            definition: A bare callable, whose parameter names are its
                dependencies, or a list of dependency names followed by the
                factory, e.g. ``["db", "cache", make_service]``.

        Raises:
            AlreadyRegisteredError: If the name is taken.
            InvalidFactoryError: If the definition has no callable factory.
        """
        if name in self._modules:
            raise AlreadyRegisteredError(name)

        parsed = parse_definition(name, definition)
        self._modules[name] = ModuleRecord(name, parsed.factory, parsed.dependencies)
        logger.debug(
            "module_registered", module=name, dependencies=list(parsed.dependencies)
        )

    def provides(
        self, name: Optional[str] = None, dependencies: Optional[Sequence[str]] = None
    ) -> Callable:
        """Decorator to register a function or class as a module.

        Args:
            name: Optional module name; defaults to the class name, or the
                function name with any 'make_' prefix removed.
            dependencies: Optional explicit dependency names; defaults to the
                parameter names of the decorated object.

        Returns:
            A decorator that registers its target and returns it unchanged.

        Example:
            @registry.provides(dependencies=["settings"])
            def make_database(cfg):
                return Database(cfg.dsn)
        """

        def decorator(target: Any) -> Any:
            definition = target if dependencies is None else [*dependencies, target]
            self.register(name or inferred_name(target), definition)
            return target

        return decorator

    def has(self, name: str) -> bool:
        return name in self._modules

    def get(self, name: str) -> ModuleRecord:
        try:
            return self._modules[name]
        except KeyError:
            raise NotFoundError(name) from None

    def registered_modules(self) -> list[ModuleRecord]:
        """Records of every registered module, in registration order."""
        return list(self._modules.values())

    def remove(self, name: str) -> None:
        """Forget a module, whatever its state.

        Modules depending on it are not checked; resolving them afterwards
        reports the missing dependency.

        Raises:
            NotFoundError: If the name is not registered.
        """
        if name not in self._modules:
            raise NotFoundError(name)
        del self._modules[name]
        logger.debug("module_removed", module=name)

    def add(self, name: str, value: Any) -> asyncio.Future:
        """Register an already built value and resolve it.

        Returns:
            A future of ``value`` itself.
        """
        # outside a loop, fail before registering
        asyncio.get_running_loop()
        self.register(name, [lambda: value])
        return self.resolve(name)

    def resolve(self, name: str) -> asyncio.Future:
        """Get a future of the module's value, building it on first request.

        Failures are reported through the returned future:

        - ``MissingModuleError`` if the name is not registered;
        - ``MissingDependenciesError`` if a declared dependency is not registered;
        - ``CyclicDependencyError`` if a dependency leads back to the module;
        - whatever a dependency's resolution or the factory raises.

        The first two checks leave the module unresolved. A failed build is not
        retried: the module keeps returning the same failed future.

        The returned future is shared by every caller of the module, so
        cancelling it cancels the build for all of them for good. Wrap it in
        ``asyncio.shield`` before applying a timeout:

            value = await asyncio.wait_for(asyncio.shield(registry.resolve(name)), 5)
        """
        loop = asyncio.get_running_loop()
        record = self._modules.get(name)
        if record is None:
            return _failed(loop, MissingModuleError(name))

        state = record.state
        if isinstance(state, Resolved):
            return _completed(loop, state.value)
        if isinstance(state, Resolving):
            return state.future

        missing = [
            dependency
            for dependency in record.dependencies
            if dependency not in self._modules
        ]
        if missing:
            return _failed(loop, MissingDependenciesError(name, missing))

        cycle = find_cycle(self._modules, [name])
        if cycle:
            return _failed(loop, CyclicDependencyError(cycle))

        build = loop.create_task(self._build(record))
        record.begin_resolving(build)
        logger.debug("module_resolving", module=name)
        return build

    def inject(self, definition: Any, context: Optional[Any] = None) -> asyncio.Future:
        """Call a one-off factory with resolved modules, without registering it.

        Args:
            definition: A bare callable or an explicit list, as for ``register``.
            context: Optional receiver the factory is bound to. A bare
                callable's first parameter then receives the context and is
                not a dependency.

        Returns:
            A future of the factory's result. Nothing is cached: each call
            invokes the factory again.

        Raises:
            InvalidFactoryError: If the definition has no callable factory.
        """
        loop = asyncio.get_running_loop()
        parsed = parse_definition(
            getattr(definition, "__name__", "<injected>"),
            definition,
            skip_receiver=context is not None,
        )

        async def run() -> Any:
            values = await self._resolve_all(parsed.dependencies)
            return await invoke_factory(parsed.factory, values, context)

        return loop.create_task(run())

    def lookup(
        self,
        patterns: Union[str, Iterable[str]],
        options: Optional[LookupOptions] = None,
    ) -> asyncio.Future:
        """Register the injectable modules found in files matching ``patterns``.

        Args:
            patterns: One glob pattern or several; patterns starting with '!'
                exclude files.
            options: Matching options, see ``LookupOptions``.

        Returns:
            A future of one ``LookupResult`` per matched file. If a module
            cannot be registered the future fails; modules registered before
            the failure stay registered.

        Matching files and importing them run in a worker thread; registration
        happens on the event loop.
        """
        loop = asyncio.get_running_loop()

        async def run() -> list[LookupResult]:
            results = []
            files = await asyncio.to_thread(lambda: list(find_files(patterns, options)))
            for file in files:
                names = []
                descriptors = await asyncio.to_thread(lookup_file, file)
                for descriptor in descriptors:
                    self.register(descriptor.name, descriptor.definition)
                    names.append(descriptor.name)
                logger.info("modules_discovered", file=str(file), modules=names)
                results.append(LookupResult(file, names))
            return results

        return loop.create_task(run())

    async def _build(self, record: ModuleRecord) -> Any:
        try:
            values = await self._resolve_all(record.dependencies)
            exported = await invoke_factory(record.factory, values)
        except Exception as exc:
            logger.warning(
                "module_resolution_failed", module=record.name, error=str(exc)
            )
            raise

        record.mark_resolved(exported)
        logger.debug("module_resolved", module=record.name)
        return exported

    async def _resolve_all(self, names: Sequence[str]) -> list[Any]:
        return list(await asyncio.gather(*(self.resolve(name) for name in names)))


def _completed(loop: asyncio.AbstractEventLoop, value: Any) -> asyncio.Future:
    future = loop.create_future()
    future.set_result(value)
    return future


def _failed(loop: asyncio.AbstractEventLoop, error: Exception) -> asyncio.Future:
    future = loop.create_future()
    future.set_exception(error)
    return future
