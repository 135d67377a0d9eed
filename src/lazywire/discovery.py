"""
Discovery of injectable modules in Python source files.

Files are matched with glob patterns and imported under a private module name.
Every class or function defined in a matched file that is marked injectable
becomes a ``ModuleDescriptor``, ready to be registered.

Objects are marked either with the ``injectable`` decorator::

    @injectable("logger")
    class Logger:
        ...

or with an ``@injectable(logger)`` annotation in the docstring of the class,
its constructor, or the function.
"""

import glob
import hashlib
import importlib.util
import inspect
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Union

from lazywire.definitions import inferred_name

__all__ = [
    "InjectableMetadata",
    "ModuleDescriptor",
    "LookupOptions",
    "LookupResult",
    "injectable",
    "injectable_metadata",
    "find_files",
    "lookup_file",
]

_DOCSTRING_ANNOTATION = re.compile(r"@injectable\(\s*[\"']?([^\"'\s)]+)[\"']?\s*\)")


@dataclass(frozen=True)
class InjectableMetadata:
    """
    Registration details attached to an injectable object.

    Attributes:
        name: Module name to register the object under.
        dependencies: Explicit dependency names, or None to read them from the
            object's signature.
    """

    name: str
    dependencies: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class ModuleDescriptor:
    """A module found in a file: its name and a registrable definition."""

    name: str
    definition: Any


@dataclass(frozen=True)
class LookupOptions:
    """
    Options controlling how glob patterns are matched.

    Attributes:
        cwd: Directory relative patterns are resolved against; defaults to the
            process working directory.
        recursive: Whether ``**`` matches any number of directories.
        include_hidden: Whether wildcards match names starting with a dot.
    """

    cwd: Optional[Union[str, os.PathLike]] = None
    recursive: bool = True
    include_hidden: bool = False


@dataclass(frozen=True)
class LookupResult:
    """The modules one discovered file contributed to a registry."""

    file: Path
    modules: list[str]


def injectable(
    name: Optional[str] = None, dependencies: Optional[Sequence[str]] = None
) -> Callable:
    """Decorator marking a class or function for discovery.

    Args:
        name: Module name; defaults to the class name, or the function name
            with any 'make_' prefix removed.
        dependencies: Explicit dependency names; defaults to the names read
            from the signature.

    Example:
        @injectable(dependencies=["config"])
        def make_database(cfg):
            return Database(cfg["dsn"])
    """

    def decorator(target: Any) -> Any:
        target.__injectable__ = InjectableMetadata(
            name or inferred_name(target),
            tuple(dependencies) if dependencies is not None else None,
        )
        return target

    return decorator


def injectable_metadata(target: Any) -> Optional[InjectableMetadata]:
    """Return the injectable metadata declared on ``target`` itself, if any.

    Metadata is not inherited: a subclass of an injectable class must be marked
    on its own.
    """
    declared = vars(target).get("__injectable__")
    if declared is not None:
        return declared

    for doc in _own_docstrings(target):
        match = _DOCSTRING_ANNOTATION.search(doc)
        if match:
            return InjectableMetadata(match.group(1))

    return None


def find_files(
    patterns: Union[str, Iterable[str]], options: Optional[LookupOptions] = None
) -> Iterator[Path]:
    """Lazily yield the regular files matched by one or more glob patterns.

    Patterns starting with '!' exclude what the rest of the pattern matches.
    Each file is yielded once, in pattern order and sorted within a pattern.
    """
    options = options or LookupOptions()
    if isinstance(patterns, str):
        patterns = [patterns]
    patterns = list(patterns)

    excluded = {
        match
        for pattern in patterns
        if pattern.startswith("!")
        for match in _glob(pattern[1:], options)
    }
    seen = set()

    for pattern in patterns:
        if pattern.startswith("!"):
            continue
        for match in _glob(pattern, options):
            if match in seen or match in excluded:
                continue
            seen.add(match)
            yield match


def lookup_file(path: Union[str, os.PathLike]) -> list[ModuleDescriptor]:
    """Import a file and describe the injectable objects defined in it.

    Only classes and functions whose ``__module__`` is the imported file are
    considered, so injectables imported from elsewhere are not picked up twice.
    """
    module = _load_module(Path(path))
    descriptors = []
    seen = set()

    for obj in vars(module).values():
        if not (inspect.isclass(obj) or inspect.isfunction(obj)):
            continue
        # aliases bind the same object twice
        if obj.__module__ != module.__name__ or id(obj) in seen:
            continue
        metadata = injectable_metadata(obj)
        if metadata is None:
            continue
        seen.add(id(obj))
        definition = (
            obj if metadata.dependencies is None else [*metadata.dependencies, obj]
        )
        descriptors.append(ModuleDescriptor(metadata.name, definition))

    return descriptors


def _glob(pattern: str, options: LookupOptions) -> list[Path]:
    if options.cwd is not None:
        pattern = os.path.join(options.cwd, pattern)
    matches = glob.glob(
        pattern, recursive=options.recursive, include_hidden=options.include_hidden
    )
    return [Path(match) for match in sorted(matches) if os.path.isfile(match)]


def _own_docstrings(target: Any) -> list[str]:
    if inspect.isclass(target):
        candidates = [
            vars(target).get("__doc__"),
            getattr(vars(target).get("__init__"), "__doc__", None),
        ]
    else:
        candidates = [getattr(target, "__doc__", None)]
    return [doc for doc in candidates if doc]


def _load_module(path: Path) -> ModuleType:
    module_name = "_lazywire_lookup_" + hashlib.sha1(str(path.resolve()).encode()).hexdigest()
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load {path} as a Python module")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module
