import functools
from typing import Any, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


def safe_collaborator(name: str, fallback: Any):
    """
    A decorator that keeps a failing collaborator from aborting a cycle.

    Features:
    - Calls the wrapped function and returns its result untouched
    - Catches exceptions, logs them with the collaborator name
    - Returns the fallback instead of re-raising
    - Preserves function metadata
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    f"Collaborator '{name}' failed, using fallback: "
                    f"{type(e).__name__}: {e}"
                )
                return fallback() if callable(fallback) else fallback

        return wrapper

    return decorator


def guarded(name: str, func: Callable[..., T], fallback: Any) -> Callable[..., T]:
    """Wrap an already-built callable, see safe_collaborator."""
    return safe_collaborator(name, fallback)(func)


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return f"{text[:length]}..."
