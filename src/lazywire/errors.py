from typing import Sequence

__all__ = [
    "DependencyError",
    "AlreadyRegisteredError",
    "NotFoundError",
    "InvalidFactoryError",
    "MissingModuleError",
    "MissingDependenciesError",
    "CyclicDependencyError",
]


class DependencyError(Exception):
    """Raised when a module cannot be registered, removed or resolved."""

    pass


class AlreadyRegisteredError(DependencyError):
    def __init__(self, name: str):
        super().__init__(f"Module {name} already registered")
        self.name = name


class NotFoundError(DependencyError):
    def __init__(self, name: str):
        super().__init__(f"Module {name} is not registered")
        self.name = name


class InvalidFactoryError(DependencyError):
    def __init__(self, name: str):
        super().__init__(f"Module {name} factory is not callable")
        self.name = name


class MissingModuleError(DependencyError):
    def __init__(self, name: str):
        super().__init__(f"Missing module {name}")
        self.name = name


class MissingDependenciesError(DependencyError):
    """Raised when a module declares dependencies that are not registered."""

    def __init__(self, name: str, missing: Sequence[str]):
        super().__init__(
            f"Module {name} missing dependencies: {', '.join(missing)}"
        )
        self.name = name
        self.missing = list(missing)


class CyclicDependencyError(DependencyError):
    """Raised when following dependencies leads back to a module on the path.

    Attributes:
        path: The names walked from the requested module to the repeated one,
            e.g. ``["a", "b", "a"]``.
    """

    def __init__(self, path: Sequence[str]):
        super().__init__(f"Cyclic dependencies: {' -> '.join(path)}")
        self.path = list(path)
