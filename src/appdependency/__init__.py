"""AppDependency dependency injection registry.

AppDependency keeps every shared service of a process in one registry. Each
dependency is created lazily by its factory the first time it is used, cached under
a stable key, and handed out unchanged from then on. Dependencies can be replaced
temporarily for tests or previews, and parts of a dependency's value can be read
and written through live slices.

Key Features:
    - Lazy, at-most-once construction of each dependency, safe across threads
    - Keys derived from the declaring source location when no id is given
    - Overrides that restore the original when their token is cancelled or released
    - Slices that always reflect the current dependency, including overrides
    - Promotion of the shared registry to a subclass without losing dependencies

Basic Usage:
    >>> from appdependency.application import Application
    >>>
    >>> @Application.provides()
    >>> def make_database() -> Database:
    ...     return Database()
    >>>
    >>> db = Application.resolve("database")
    >>> with Application.override("database", InMemoryDatabase()):
    ...     run_tests()

The framework consists of several core modules:
    - application: The shared registry and its public API
    - domain: Core domain models (Scope, Dependency)
    - cache: The key/value store owned by the registry
    - identity: Ids derived from source locations
    - override: Override tokens and the preview helper
    - slice: Live views onto part of a dependency
    - errors: Framework-specific exceptions
"""
