"""The process-wide registry of dependencies.

:class:`Application` creates each dependency the first time it is asked for, keeps
it for the rest of the process, and hands out the same instance on every later
request. Dependencies are declared as properties of the application, either with
the :meth:`Application.provides` decorator or by hand with
:meth:`Application.dependency`, and looked up by a *key path*: the property's name,
or a callable that takes the application and returns the :class:`Dependency`.

All state changes happen under the shared instance's reentrant lock, so factories
may themselves resolve other dependencies.

Example:
    >>> @Application.provides()
    ... def make_clock() -> Clock:
    ...     return SystemClock()
    >>>
    >>> Application.resolve("clock")
    <SystemClock ...>
    >>> with Application.override("clock", FixedClock(0)):
    ...     Application.resolve("clock")
    <FixedClock ...>
"""

import inspect
import logging
import threading
from dataclasses import dataclass
from functools import partial
from operator import attrgetter
from typing import Any, Callable, Optional, TypeVar, Union, get_origin, get_type_hints

from appdependency.cache import Cache, ChangeCallback
from appdependency.domain import Dependency, Scope
from appdependency.errors import DependencyError, DependencyTypeError
from appdependency.identity import caller_id, definition_id, inferred_name
from appdependency.override import DependencyOverride
from appdependency.slice import DependencySlice, WritableDependencySlice, replace_attribute

__all__ = ["Application", "KeyPath"]

V = TypeVar("V")
A = TypeVar("A", bound="Application")

KeyPath = Union[str, Callable[["Application"], Dependency]]
"""Locates a dependency on the application.

Either the name of a property of the application, or a callable taking the
application and returning the :class:`Dependency`.

Example:
    >>> Application.resolve("clock")
    >>> Application.resolve(lambda app: app.dependency(SystemClock, id="clock"))
"""


@dataclass(eq=False)
class _OverrideRecord:
    """An active override and the dependency to restore when it is cancelled."""

    key: str
    restore: Dependency


class Application:
    """Registry owning every dependency of the process.

    There is one shared instance at a time, created on first use. It can be
    replaced by an instance of a subclass with :meth:`promote`, which carries all
    dependencies over.

    Attributes:
        lock: Reentrant lock guarding all state of this instance.
        cache: Store of dependencies by scope key. Only the application touches it.
    """

    logger: logging.Logger = logging.getLogger("appdependency")
    is_logging_enabled: bool = False

    _shared: Optional["Application"] = None
    _shared_lock = threading.RLock()

    def __init__(self):
        self.lock = threading.RLock()
        self.cache = Cache()
        self._overrides: dict[str, list[_OverrideRecord]] = {}
        self._observers: list[ChangeCallback] = []
        self._unsubscribe_cache = self.cache.subscribe(self._cache_did_change)
        # Set by promote; writes are then forwarded to the shared instance
        self._retired = False

    # Declaring dependencies

    def dependency(
        self,
        factory: Callable[[], V],
        feature: str = "App",
        id: Optional[str] = None,
        value_type: Optional[type] = None,
        stacklevel: int = 1,
    ) -> Dependency[V]:
        """Return the dependency for a scope, creating it with `factory` the first time.

        Args:
            factory: Called without arguments, at most once per key, to create the value.
            feature: The name of the feature the dependency belongs to.
            id: The dependency's id within the feature. If None, the id is derived from
                the source location of the call, `stacklevel` frames up.
            value_type: If a class usable with isinstance, the stored value must be an
                instance of it. Any and non-runtime protocols are not checked.
            stacklevel: Which caller's source location names the dependency when no id
                is given; 1 means the direct caller.

        Returns:
            The cached or newly created :class:`Dependency`.

        Raises:
            DependencyTypeError: If the key already holds something of another type.

        Example:
            >>> class MyApplication(Application):
            ...     @property
            ...     def clock(self) -> Dependency[Clock]:
            ...         return self.dependency(SystemClock)
        """
        scope = Scope(feature, id if id is not None else caller_id(stacklevel))
        key = scope.key

        with self.lock:
            if self._retired:
                return Application.shared().dependency(
                    factory, feature=feature, id=scope.id, value_type=value_type
                )

            dependency = self.cache.get(key, as_type=Dependency)
            if dependency is None:
                dependency = Dependency(factory(), scope)
                self.cache.set(key, dependency)

            _check_value_type(dependency, value_type)
            return dependency

    def value(self, key_path: KeyPath) -> Dependency:
        """Resolve a key path against this instance."""
        if isinstance(key_path, str):
            dependency = getattr(self, key_path)
        else:
            dependency = key_path(self)

        if not isinstance(dependency, Dependency):
            raise DependencyTypeError(
                f"Key path {_describe(key_path)} resolved to {type(dependency).__name__}, "
                "expected Dependency"
            )
        return dependency

    def update(self, key_path: KeyPath, transform: Callable[[Any], Any]) -> Dependency:
        """Replace a dependency's value with `transform` applied to it.

        The read and the write happen under the lock, so concurrent updates of the
        same dependency are applied one after another.

        Returns:
            The newly stored :class:`Dependency`.
        """
        with self.lock:
            if self._retired:
                return Application.shared().update(key_path, transform)

            dependency = self.value(key_path)
            updated = dependency.replacing(transform(dependency.value))
            self.cache.set(dependency.scope.key, updated)
            return updated

    # Observation

    def subscribe(self, callback: ChangeCallback):
        """Call `callback` with the key of every dependency that changes.

        Callbacks run while the lock is held, after the change is stored. They are
        dropped when this instance is replaced by :meth:`promote`.
        """
        with self.lock:
            self._observers.append(callback)

    def will_change(self, key: str):
        """Hook called on every change before observers are notified.

        Subclasses installed with :meth:`promote` override this to react to changes.
        """
        pass

    def _cache_did_change(self, key: str):
        self.will_change(key)
        for observer in list(self._observers):
            observer(key)

    def _stop_observing(self):
        self._unsubscribe_cache()
        self._observers.clear()

    # Overrides

    def _install_override(self, key_path: KeyPath, value: Any) -> _OverrideRecord:
        with self.lock:
            if self._retired:
                return Application.shared()._install_override(key_path, value)

            dependency = self.value(key_path)
            record = _OverrideRecord(dependency.scope.key, dependency)
            self._overrides.setdefault(record.key, []).append(record)
            self.cache.set(record.key, dependency.replacing(value))
            return record

    def _cancel_override(self, record: _OverrideRecord):
        with self.lock:
            records = self._overrides.get(record.key, [])
            if record not in records:
                return

            index = records.index(record)
            if index == len(records) - 1:
                self.cache.set(record.key, record.restore)
            else:
                # The override above now unwinds to what this one would have
                records[index + 1].restore = record.restore
            del records[index]

            if not records:
                del self._overrides[record.key]

    # Class-level API

    @classmethod
    def shared(cls) -> "Application":
        """Return the shared instance, creating it on first use."""
        shared = Application._shared
        if shared is not None:
            return shared

        with Application._shared_lock:
            if Application._shared is None:
                Application._shared = Application()
            return Application._shared

    @classmethod
    def resolve(cls, key_path: KeyPath) -> Any:
        """Return the value of the dependency at `key_path`, creating it if needed."""
        cls._log_debug(lambda: f"Getting Dependency {_describe(key_path)}", stacklevel=2)
        return cls.shared().value(key_path).value

    @classmethod
    def load(cls, key_path: KeyPath) -> type["Application"]:
        """Make sure the dependency at `key_path` has been created.

        Returns:
            The class, to allow chaining.
        """
        cls.shared().value(key_path)
        return cls

    @classmethod
    def override(cls, key_path: KeyPath, value: Any) -> DependencyOverride:
        """Replace the dependency at `key_path` with `value` until the token is cancelled.

        The dependency is created first if it does not exist yet, so there is always
        something to restore. Keep the returned token for as long as the override
        should last: cancelling it, leaving a ``with`` block on it, or dropping it
        restores the dependency that was in place when the override started.
        Overrides of the same dependency unwind last-in, first-out.

        Args:
            key_path: Locates the dependency to replace.
            value: The value to hand out instead.

        Returns:
            A :class:`DependencyOverride` controlling the override's lifetime.
        """
        cls._log_debug(
            lambda: f"Starting Dependency Override {_describe(key_path)} with {value!r}",
            stacklevel=2,
        )
        record = cls.shared()._install_override(key_path, value)

        def cancel():
            cls._log_debug(
                lambda: f"Cancelling Dependency Override {_describe(key_path)}",
                stacklevel=3,
            )
            Application.shared()._cancel_override(record)

        return DependencyOverride(cancel)

    @classmethod
    def dependency_slice(
        cls,
        key_path: KeyPath,
        field: Union[str, Callable[[Any], Any]],
        setter: Optional[Callable[[Any, Any], Any]] = None,
    ) -> DependencySlice:
        """Create a live view of part of a dependency's value.

        Args:
            key_path: Locates the dependency to slice.
            field: An attribute name, possibly dotted, or a callable extracting the part
                from the dependency's value.
            setter: Builds an updated value from the current value and a new part. When
                `field` is an attribute name this defaults to copying the value with the
                attribute replaced.

        Returns:
            A :class:`WritableDependencySlice` when the part can be written, otherwise a
            read-only :class:`DependencySlice`.

        Example:
            >>> slice = Application.dependency_slice("settings", "theme")
            >>> slice.value = "dark"
            >>> Application.resolve("settings").theme
            'dark'
        """
        if isinstance(field, str):
            getter = attrgetter(field)
            setter = setter or partial(_replace_field, field)
        else:
            getter = field

        if setter is None:
            dependency_slice = DependencySlice(key_path, getter, Application.shared)
        else:
            dependency_slice = WritableDependencySlice(key_path, getter, setter, Application.shared)

        cls._log_debug(
            lambda: f"Getting DependencySlice {_describe(key_path)}.{_describe(field)} "
            f"-> {dependency_slice.value!r}",
            stacklevel=2,
        )
        return dependency_slice

    @classmethod
    def promote(cls, custom_application: type[A]) -> type[A]:
        """Replace the shared instance with an instance of `custom_application`.

        Every cached dependency and active override moves to the new instance, so
        nothing already created is created again. Observers of the old instance are
        dropped. Call this once at startup, before dependencies are used.

        Args:
            custom_application: A subclass of Application, e.g. one overriding
                :meth:`will_change`.

        Returns:
            `custom_application`, to allow chaining.

        Raises:
            TypeError: If `custom_application` is not a subclass of Application.
        """
        if not (inspect.isclass(custom_application) and issubclass(custom_application, Application)):
            raise TypeError(f"{custom_application!r} is not a subclass of Application")

        with Application._shared_lock:
            previous = Application.shared()
            with previous.lock:
                previous._stop_observing()
                promoted = custom_application()

                with promoted.lock:
                    for key, value in previous.cache.all_values().items():
                        promoted.cache.set(key, value)
                        previous.cache.remove(key)
                    promoted._overrides.update(previous._overrides)
                    previous._overrides.clear()

                previous._retired = True
                Application._shared = promoted

        cls._log_debug(
            lambda: f"Promoted {type(previous).__name__} to {custom_application.__name__}",
            stacklevel=2,
        )
        return custom_application

    @classmethod
    def set_logging_enabled(cls, is_enabled: bool) -> type["Application"]:
        """Turn debug logging of dependency access on or off.

        Returns:
            The class, to allow chaining.
        """
        Application.is_logging_enabled = is_enabled
        return cls

    @classmethod
    def provides(
        cls, name: Optional[str] = None, feature: str = "App", id: Optional[str] = None
    ) -> Callable:
        """Decorator declaring a factory function as a dependency of the application.

        A property named after the function is added to the class the decorator is
        called on. Reading the property returns the :class:`Dependency`, creating it
        with the function on first access.

        Args:
            name: The property name; defaults to the function name with any 'make_'
                prefix removed.
            feature: The name of the feature the dependency belongs to.
            id: The dependency's id; defaults to one derived from where the function
                is defined.

        Returns:
            A decorator that registers the function and returns it unchanged.

        Example:
            @Application.provides(feature="Network")
            def make_session() -> Session:
                return Session()

            Application.resolve("session")
        """

        def decorator(factory):
            if not inspect.isfunction(factory):
                raise DependencyError(f"{factory} is not a function")
            if factory.__name__ == "<lambda>":
                raise DependencyError(f"{factory} is a lambda; declare the factory with def")

            attribute_name = name or inferred_name(factory)
            dependency_id = id or definition_id(factory)
            value_type = _declared_type(factory)

            def get_dependency(app: Application) -> Dependency:
                return app.dependency(factory, feature=feature, id=dependency_id, value_type=value_type)

            get_dependency.__name__ = attribute_name
            setattr(cls, attribute_name, property(get_dependency, doc=factory.__doc__))
            return factory

        return decorator

    @classmethod
    def description(cls) -> str:
        """Describe every dependency currently held by the shared instance."""
        app = cls.shared()
        with app.lock:
            entries = [f"  {key}: {value!r}" for key, value in sorted(app.cache.all_values().items())]
        return "{\n" + ",\n".join(entries) + "\n}"

    @classmethod
    def reset(cls):
        """Drop every dependency and override held by the shared instance.

        Dependencies are created again on next use. Outstanding override tokens become
        no-ops. Intended for tests.
        """
        app = cls.shared()
        with app.lock:
            app._overrides.clear()
            for key in app.cache.keys():
                app.cache.remove(key)

    @classmethod
    def _log_debug(cls, message: Union[str, Callable[[], str]], stacklevel: int = 1):
        if not Application.is_logging_enabled:
            return
        text = message() if callable(message) else message
        Application.logger.debug(text, stacklevel=stacklevel + 1)


def _describe(target: Any) -> str:
    if isinstance(target, str):
        return target
    return getattr(target, "__qualname__", repr(target))


def _replace_field(name: str, value: Any, new_value: Any) -> Any:
    return replace_attribute(value, name, new_value)


_NUMERIC_TOWER = {
    float: (int, float),
    complex: (int, float, complex),
}


def _is_checkable(value_type: Any) -> bool:
    if value_type is Any or not inspect.isclass(value_type) or get_origin(value_type) is not None:
        return False
    # Only runtime-checkable protocols support isinstance
    return not (
        getattr(value_type, "_is_protocol", False)
        and not getattr(value_type, "_is_runtime_protocol", False)
    )


def _declared_type(factory: Callable) -> Optional[type]:
    return_type = get_type_hints(factory).get("return", None)
    return return_type if _is_checkable(return_type) else None


def _check_value_type(dependency: Dependency, value_type: Optional[type]):
    if not _is_checkable(value_type):
        return
    if not isinstance(dependency.value, _NUMERIC_TOWER.get(value_type, value_type)):
        raise DependencyTypeError(
            f"Dependency {dependency.scope.key!r} holds {type(dependency.value).__name__}, "
            f"expected {value_type.__name__}"
        )
