"""Domain models used throughout the framework."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from appdependency.errors import ScopeError

__all__ = ["Scope", "Dependency", "KEY_DELIMITER"]

KEY_DELIMITER = "."

V = TypeVar("V")


@dataclass(frozen=True)
class Scope:
    """Identifies the storage slot of a dependency.

    The feature name may not contain the key delimiter, so the key can always be
    split back into its parts on the first delimiter, even when the id (for example
    one derived from a module name) contains it.

    Attributes:
        name: The name of the feature the dependency belongs to, e.g. "App".
        id: The identifier of the dependency within its feature.

    Example:
        >>> Scope("App", "counter").key
        'App.counter'
    """

    name: str
    id: str

    def __post_init__(self):
        if not self.name or KEY_DELIMITER in self.name:
            raise ScopeError(
                f"Feature name {self.name!r} must be non-empty and must not contain {KEY_DELIMITER!r}"
            )
        if not self.id:
            raise ScopeError(f"Dependency id in feature {self.name!r} must be non-empty")

    @property
    def key(self) -> str:
        return f"{self.name}{KEY_DELIMITER}{self.id}"


@dataclass(frozen=True)
class Dependency(Generic[V]):
    """A value created by a factory, held in the registry under its scope's key.

    Dependencies are never changed in place: overrides and slice writes store a new
    Dependency with the same scope.

    Attributes:
        value: The object handed to consumers.
        scope: The scope whose key addresses this dependency in the registry.
    """

    value: V
    scope: Scope

    def replacing(self, value: V) -> "Dependency[V]":
        """Return a Dependency holding `value` under the same scope."""
        return Dependency(value, self.scope)
