__all__ = ["DependencyError", "DependencyTypeError", "ScopeError"]


class DependencyError(Exception):
    """Raised when a dependency cannot be stored or resolved as declared."""

    pass


class DependencyTypeError(DependencyError):
    """Raised when the value stored under a key is not of the requested type.

    This means two declarations were given the same key, or an override installed
    a value of the wrong type. It is a programming error and is never recovered from.
    """

    pass


class ScopeError(DependencyError):
    """Raised when a scope's feature name or id cannot form an unambiguous key."""

    pass
