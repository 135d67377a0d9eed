"""Normalising module definitions and calling their factories."""

import inspect
from dataclasses import dataclass
from types import MethodType
from typing import Annotated, Any, Callable, Optional, get_args, get_origin, get_type_hints

from lazywire.errors import InvalidFactoryError

__all__ = [
    "Definition",
    "parse_definition",
    "extract_dependency_names",
    "inferred_name",
    "invoke_factory",
]

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


@dataclass(frozen=True)
class Definition:
    """A factory together with the names of the modules it is called with."""

    factory: Callable
    dependencies: tuple[str, ...]


def parse_definition(name: str, definition: Any, skip_receiver: bool = False) -> Definition:
    """Normalise either accepted definition shape.

    A definition is a bare callable, whose dependencies are read from its
    signature, or a list or tuple of dependency names followed by the factory.

    Args:
        name: Module name, used for error reporting only.
        definition: The bare callable or explicit list.
        skip_receiver: Drop the first parameter of a bare callable, which
            receives the bound context rather than a dependency.

    Raises:
        InvalidFactoryError: If no callable factory can be found.

    Example:
        >>> parse_definition("b", ["a", lambda a: a + 1]).dependencies
        ('a',)
    """
    if callable(definition):
        return Definition(
            definition, tuple(extract_dependency_names(definition, skip_receiver))
        )

    if not isinstance(definition, (list, tuple)) or not definition:
        raise InvalidFactoryError(name)

    *dependencies, factory = definition
    if not callable(factory):
        raise InvalidFactoryError(name)
    return Definition(factory, tuple(dependencies))


def extract_dependency_names(factory: Callable, skip_receiver: bool = False) -> list[str]:
    """Read dependency names from a factory's positional parameters.

    Each positional parameter depends on the module of the same name, unless
    it is annotated ``Annotated[SomeType, "module_name"]``, in which case the
    first string in the metadata names the module. ``*args``, ``**kwargs`` and
    keyword-only parameters are not dependencies. Classes are inspected via
    their constructor.

    Example:
        >>> def service(db, cache: Annotated[Cache, "redis"]): ...
        >>> extract_dependency_names(service)
        ['db', 'redis']
    """
    try:
        parameters = inspect.signature(factory).parameters
    except (ValueError, TypeError):
        # builtins such as dict expose no signature; they take no dependencies
        return []

    hints = _type_hints(factory)
    names = [
        _dependency_name(name, hints.get(name, parameter.annotation))
        for name, parameter in parameters.items()
        if parameter.kind in _POSITIONAL
    ]
    return names[1:] if skip_receiver else names


def inferred_name(target: Any) -> str:
    """Module name for a decorated class or factory function.

    Classes keep their own name; a factory function loses its ``make_`` prefix,
    so ``make_database`` provides the module ``database``.
    """
    name = target.__name__
    if inspect.isclass(target) or not name.startswith("make_"):
        return name
    return name[len("make_"):]


async def invoke_factory(factory: Callable, args: list[Any], receiver: Optional[Any] = None) -> Any:
    """Call a factory positionally, awaiting its result if it is awaitable.

    With a receiver the factory is bound to it first, so it arrives as the
    factory's first argument.
    """
    target = factory if receiver is None else MethodType(factory, receiver)
    result = target(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _type_hints(factory: Callable) -> dict[str, Any]:
    source = factory.__init__ if inspect.isclass(factory) else factory
    try:
        return get_type_hints(source, include_extras=True)
    except (NameError, TypeError):
        # unresolvable forward references, or partials and callable instances
        # without annotations of their own; raw annotations are used instead
        return {}


def _dependency_name(parameter_name: str, annotation: Any) -> str:
    if get_origin(annotation) is Annotated:
        _, *metadata = get_args(annotation)
        return next((m for m in metadata if isinstance(m, str)), parameter_name)
    return parameter_name
