"""Key/value store backing the registry.

The cache maps string keys to arbitrary values and tells its subscribers about every
write and removal. It does no locking of its own: the owning
:class:`~appdependency.application.Application` serializes all access under its lock.
"""

from typing import Any, Callable, Iterator, Optional

from appdependency.errors import DependencyTypeError

__all__ = ["Cache", "ChangeCallback"]

ChangeCallback = Callable[[str], None]
"""Called with the key whose value was written or removed."""


class Cache:
    """Store of values by string key with change notification.

    Example:
        >>> cache = Cache()
        >>> cache.set("App.counter", 1)
        >>> cache.get("App.counter")
        1
        >>> cache.remove("App.counter")
        >>> cache.get("App.counter") is None
        True
    """

    def __init__(self):
        self._values: dict[str, Any] = {}
        self._subscribers: list[ChangeCallback] = []

    def get(self, key: str, as_type: Optional[type] = None) -> Any:
        """Return the value stored under `key`, or None if there is none.

        Args:
            key: The key to look up.
            as_type: If given, the stored value must be an instance of this type.

        Raises:
            DependencyTypeError: If a value is stored but is not an instance of `as_type`.
        """
        value = self._values.get(key)
        if value is not None and as_type is not None and not isinstance(value, as_type):
            raise DependencyTypeError(
                f"Value stored under {key!r} is {type(value).__name__}, expected {as_type.__name__}"
            )
        return value

    def set(self, key: str, value: Any):
        self._values[key] = value
        self._notify(key)

    def remove(self, key: str):
        if key in self._values:
            del self._values[key]
            self._notify(key)

    def contains(self, key: str) -> bool:
        return key in self._values

    def keys(self) -> list[str]:
        return list(self._values)

    def all_values(self) -> dict[str, Any]:
        """Return a snapshot of every entry; later writes do not affect it."""
        return dict(self._values)

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register `callback` to be called with the key of every change.

        Returns:
            A function that removes the subscription again.
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, key: str):
        for subscriber in list(self._subscribers):
            subscriber(key)

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
