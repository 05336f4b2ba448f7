"""Identifiers derived from source locations.

Dependencies declared without an explicit id are keyed by where they are declared:
the module, the enclosing function, and the line and column of the declaring call.
The same declaration therefore always maps to the same key, while two declarations
at different places never share one.
"""

import inspect
from typing import Any, Callable

__all__ = ["code_id", "caller_id", "definition_id", "inferred_name"]


def code_id(file_id: str, function: str, line: int, column: int) -> str:
    """Build an id from a source location.

    Example:
        >>> code_id("app.services", "Services.clock", 12, 15)
        'app.services[Services.clock|12:15]'
    """
    return f"{file_id}[{function}|{line}:{column}]"


def caller_id(stacklevel: int = 1) -> str:
    """Derive an id from the call site `stacklevel` frames above the caller.

    With the default of 1 the id describes the line that called the function which
    called `caller_id`.

    Args:
        stacklevel: How many frames above the caller's own frame to look.

    Returns:
        The :func:`code_id` of that frame's current position.
    """
    frame = inspect.currentframe()
    try:
        for _ in range(stacklevel + 1):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            raise ValueError(f"No frame {stacklevel} levels above the caller")

        info = inspect.getframeinfo(frame, context=0)
        column = info.positions.col_offset if info.positions else None
        return code_id(
            frame.f_globals.get("__name__", frame.f_code.co_filename),
            frame.f_code.co_qualname,
            info.lineno,
            column or 0,
        )
    finally:
        del frame


def definition_id(func: Callable) -> str:
    """Derive an id from the place where `func` is defined."""
    func = inspect.unwrap(func)
    return code_id(func.__module__, func.__qualname__, func.__code__.co_firstlineno, 0)


def inferred_name(target: Any) -> str:
    """Derive an attribute name from a factory, removing any 'make_' prefix.

    Example:
        >>> inferred_name(make_database)  # Returns "database"
        >>> inferred_name(clock)          # Returns "clock"
    """
    if target.__name__.startswith("make_"):
        return target.__name__[5:]
    else:
        return target.__name__
