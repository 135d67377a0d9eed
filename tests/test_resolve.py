import asyncio
from dataclasses import dataclass

import pytest

from lazywire import (
    CyclicDependencyError,
    MissingDependenciesError,
    MissingModuleError,
    Registry,
    Resolved,
    Resolving,
    Unresolved,
)


@dataclass(frozen=True)
class Database:
    dsn: str


@dataclass(frozen=True)
class Service:
    db: Database


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def counted(registry):
    calls = []

    def make_thing():
        calls.append(1)
        return object()

    registry.register("thing", make_thing)
    return calls


@pytest.mark.asyncio
async def test_zero_dependency_module_resolves_to_factory_result(registry):
    registry.register("a", lambda: 1)

    assert await registry.resolve("a") == 1


@pytest.mark.asyncio
async def test_dependency_value_is_passed_to_factory(registry):
    registry.register("a", lambda: 1)
    registry.register("b", ["a", lambda a: a + 1])

    assert await registry.resolve("b") == 2
    assert registry.get("a").state == Resolved(1)


@pytest.mark.asyncio
async def test_dependencies_are_passed_positionally_in_declared_order(registry):
    registry.add("x", "first")
    registry.add("y", "second")
    registry.register("pair", ["y", "x", lambda *args: args])

    assert await registry.resolve("pair") == ("second", "first")


@pytest.mark.asyncio
async def test_classes_are_built_from_dependencies(registry):
    registry.register("database", lambda: Database("sqlite://"))
    registry.register("service", ["database", Service])

    service = await registry.resolve("service")

    assert service == Service(Database("sqlite://"))
    assert service.db is await registry.resolve("database")


@pytest.mark.asyncio
async def test_concurrent_resolution_builds_once(registry, counted):
    values = await asyncio.gather(*(registry.resolve("thing") for _ in range(10)))

    assert len(counted) == 1
    assert all(value is values[0] for value in values)


@pytest.mark.asyncio
async def test_concurrent_requests_share_pending_future(registry, counted):
    first = registry.resolve("thing")
    second = registry.resolve("thing")

    assert first is second
    assert isinstance(registry.get("thing").state, Resolving)
    await first


@pytest.mark.asyncio
async def test_sequential_resolution_returns_identical_value(registry, counted):
    first = await registry.resolve("thing")
    second = await registry.resolve("thing")

    assert first is second
    assert len(counted) == 1


@pytest.mark.asyncio
async def test_resolved_module_returns_completed_future(registry):
    registry.register("a", lambda: 1)
    await registry.resolve("a")

    future = registry.resolve("a")

    assert future.done()
    assert future.result() == 1


@pytest.mark.asyncio
async def test_shared_dependency_is_built_once(registry):
    calls = []

    def make_db():
        calls.append(1)
        return Database("sqlite://")

    registry.register("db", make_db)
    registry.register("users", ["db", lambda db: ("users", db)])
    registry.register("orders", ["db", lambda db: ("orders", db)])
    registry.register("app", ["users", "orders", lambda u, o: (u, o)])

    (_, users_db), (_, orders_db) = await registry.resolve("app")

    assert users_db is orders_db
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_repeated_dependency_receives_same_value_twice(registry):
    registry.register("a", lambda: object())
    registry.register("b", ["a", "a", lambda x, y: (x, y)])

    x, y = await registry.resolve("b")

    assert x is y


@pytest.mark.asyncio
async def test_async_factory_is_awaited(registry):
    async def make_connection(dsn):
        await asyncio.sleep(0)
        return f"connected to {dsn}"

    registry.add("dsn", "sqlite://")
    registry.register("connection", make_connection)

    assert await registry.resolve("connection") == "connected to sqlite://"


@pytest.mark.asyncio
async def test_dependents_wait_for_slow_factory(registry):
    release = asyncio.Event()

    async def make_slow():
        await release.wait()
        return "slow"

    registry.register("slow", make_slow)
    registry.register("fast", ["slow", lambda s: s.upper()])

    pending = registry.resolve("fast")
    await asyncio.sleep(0)
    assert not pending.done()

    release.set()

    assert await pending == "SLOW"


@pytest.mark.asyncio
async def test_unknown_module_fails(registry):
    with pytest.raises(MissingModuleError) as e:
        await registry.resolve("ghost")

    assert e.value.name == "ghost"


@pytest.mark.asyncio
async def test_missing_dependencies_are_reported_and_state_untouched(registry):
    registry.register("x", ["y", lambda y: y])

    with pytest.raises(MissingDependenciesError) as e:
        await registry.resolve("x")

    assert e.value.name == "x"
    assert e.value.missing == ["y"]
    assert registry.get("x").state == Unresolved()


@pytest.mark.asyncio
async def test_module_resolves_once_missing_dependency_is_registered(registry):
    registry.register("x", ["y", lambda y: y * 2])
    with pytest.raises(MissingDependenciesError):
        await registry.resolve("x")

    registry.add("y", 21)

    assert await registry.resolve("x") == 42


@pytest.mark.asyncio
async def test_transitively_missing_dependency_fails_dependent(registry):
    registry.register("a", ["b", lambda b: b])
    registry.register("b", ["c", lambda c: c])

    with pytest.raises(MissingDependenciesError) as e:
        await registry.resolve("a")

    assert e.value.name == "b"
    assert e.value.missing == ["c"]


@pytest.mark.asyncio
async def test_two_module_cycle_is_reported(registry):
    registry.register("b", ["a", lambda a: a])
    registry.register("a", ["b", lambda b: b])

    with pytest.raises(CyclicDependencyError) as e:
        await registry.resolve("a")

    assert e.value.path == ["a", "b", "a"]
    assert e.value.path[0] == e.value.path[-1]
    assert registry.get("a").state == Unresolved()
    assert registry.get("b").state == Unresolved()


@pytest.mark.asyncio
async def test_self_dependency_is_a_cycle(registry):
    registry.register("a", ["a", lambda a: a])

    with pytest.raises(CyclicDependencyError) as e:
        await registry.resolve("a")

    assert e.value.path == ["a", "a"]


@pytest.mark.asyncio
async def test_failing_factory_fails_every_waiter(registry):
    def explode():
        raise ValueError("boom")

    registry.register("bomb", explode)

    first = registry.resolve("bomb")
    second = registry.resolve("bomb")
    results = await asyncio.gather(first, second, return_exceptions=True)

    assert all(isinstance(r, ValueError) for r in results)


@pytest.mark.asyncio
async def test_failed_build_is_not_retried(registry):
    calls = []

    def explode():
        calls.append(1)
        raise ValueError("boom")

    registry.register("bomb", explode)
    failed = registry.resolve("bomb")
    with pytest.raises(ValueError):
        await failed

    again = registry.resolve("bomb")

    assert again is failed
    assert isinstance(registry.get("bomb").state, Resolving)
    with pytest.raises(ValueError):
        await again
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_dependency_failure_propagates_to_dependents(registry):
    def explode():
        raise ValueError("boom")

    registry.register("bomb", explode)
    registry.register("user", ["bomb", lambda bomb: bomb])

    with pytest.raises(ValueError, match="boom"):
        await registry.resolve("user")


@pytest.mark.asyncio
async def test_removed_dependency_is_reported_as_missing(registry):
    registry.register("a", lambda: 1)
    registry.register("b", ["a", lambda a: a + 1])

    registry.remove("a")

    with pytest.raises(MissingDependenciesError) as e:
        await registry.resolve("b")
    assert e.value.missing == ["a"]


@pytest.mark.asyncio
async def test_resolved_dependents_survive_removal(registry):
    registry.register("a", lambda: 1)
    registry.register("b", ["a", lambda a: a + 1])
    await registry.resolve("b")

    registry.remove("a")

    assert await registry.resolve("b") == 2


@pytest.mark.asyncio
async def test_shielded_timeout_leaves_build_running(registry):
    release = asyncio.Event()

    async def make_slow():
        await release.wait()
        return "slow"

    registry.register("slow", make_slow)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(asyncio.shield(registry.resolve("slow")), 0.01)

    release.set()

    assert await registry.resolve("slow") == "slow"


@pytest.mark.asyncio
async def test_unshielded_timeout_cancels_shared_build(registry):
    release = asyncio.Event()

    async def make_slow():
        await release.wait()
        return "slow"

    registry.register("slow", make_slow)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(registry.resolve("slow"), 0.01)

    release.set()

    with pytest.raises(asyncio.CancelledError):
        await registry.resolve("slow")
    assert isinstance(registry.get("slow").state, Resolving)
