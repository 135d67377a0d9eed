"""Cycle detection over registered module dependencies."""

from typing import Mapping, Optional, Sequence

from lazywire.domain import ModuleRecord

__all__ = ["find_cycle"]


def find_cycle(
    modules: Mapping[str, ModuleRecord], path: Sequence[str]
) -> Optional[list[str]]:
    """
    Walk dependencies depth-first from the last name in ``path``.

    Only edges to registered modules are followed; missing dependencies are
    reported elsewhere. Nothing is memoised between branches, so a module shared
    by two independent branches is walked twice, but the walk always ends on an
    acyclic graph.

    Args:
        modules: The registry's records, by name.
        path: The names walked so far, starting with the module being resolved.

    Returns:
        The path extended up to and including the first repeated name, or None
        if no cycle is reachable.

    Example:
        >>> # a depends on b, b depends on a
        >>> find_cycle(modules, ["a"])
        ['a', 'b', 'a']
    """
    current = modules.get(path[-1])
    if current is None:
        return None

    for dependency in current.dependencies:
        if dependency in path:
            return [*path, dependency]
        if dependency not in modules:
            continue
        cycle = find_cycle(modules, [*path, dependency])
        if cycle:
            return cycle

    return None
