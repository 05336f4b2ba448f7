"""Live projections onto part of a dependency's value.

A slice holds no value of its own. Every read resolves the dependency again from the
current shared :class:`~appdependency.application.Application`, so overrides,
promotions and writes made elsewhere are visible immediately. Writable slices
store a new dependency holding the updated value rather than changing the stored
value in place.
"""

import copy
import dataclasses
from typing import Any, Callable, Generic, TypeVar

__all__ = ["DependencySlice", "WritableDependencySlice", "replace_attribute"]

V = TypeVar("V")
S = TypeVar("S")


class DependencySlice(Generic[V, S]):
    """Read-only view of one part of a dependency's value.

    Attributes:
        key_path: The attribute name or callable locating the dependency on the application.
    """

    def __init__(self, key_path: Any, getter: Callable[[V], S], registry: Callable[[], Any]):
        self.key_path = key_path
        self._getter = getter
        self._registry = registry

    def _get_value(self) -> S:
        return self._getter(self._registry().value(self.key_path).value)

    value = property(_get_value, doc="The current value of the sliced part.")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key_path!r}>"


class WritableDependencySlice(DependencySlice[V, S]):
    """View of one part of a dependency's value that can also be assigned.

    Assigning :attr:`value` reads the current dependency, builds the updated value
    with `setter` and stores it, all under the registry's lock, so concurrent writers
    of the same dependency do not lose each other's updates.
    """

    def __init__(
        self,
        key_path: Any,
        getter: Callable[[V], S],
        setter: Callable[[V, S], V],
        registry: Callable[[], Any],
    ):
        super().__init__(key_path, getter, registry)
        self._setter = setter

    def _set_value(self, new_value: S):
        self._registry().update(self.key_path, lambda value: self._setter(value, new_value))

    value = property(DependencySlice._get_value, _set_value, doc="The current value of the sliced part.")


def replace_attribute(target: Any, name: str, new_value: Any) -> Any:
    """Return a copy of `target` with attribute `name` set to `new_value`.

    Dataclass instances are copied with :func:`dataclasses.replace`, other objects
    with :func:`copy.copy`. Dotted names replace nested attributes, copying each
    object along the path; `target` itself is left untouched.

    Example:
        >>> settings = Settings(theme=Theme(color="red"))
        >>> replace_attribute(settings, "theme.color", "blue").theme.color
        'blue'
        >>> settings.theme.color
        'red'
    """
    head, _, rest = name.partition(".")
    if rest:
        new_value = replace_attribute(getattr(target, head), rest, new_value)

    if dataclasses.is_dataclass(target) and not isinstance(target, type):
        return dataclasses.replace(target, **{head: new_value})

    replaced = copy.copy(target)
    setattr(replaced, head, new_value)
    return replaced
