"""Async memoization through an injected CacheStore."""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from loguru import logger

from voter_analytics.lib.result_cache.cache import CacheStore, make_cache_key

P = ParamSpec("P")
R = TypeVar("R")

_MISSING = object()


def memoize(
    cache: CacheStore,
    namespace: str,
    *,
    key_args: Callable[..., tuple[tuple[Any, ...], dict[str, Any]]] | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Memoize an async function's results in ``cache``.

    Concurrent misses may compute the same value twice; the later write
    overwrites an identical value.  Exceptions are not cached.

    Args:
        cache: The store to read and write.
        namespace: Key prefix identifying the computation.
        key_args: Optional function mapping the call arguments to the
            ``(args, kwargs)`` that form the key, used to drop
            non-serializable arguments such as sessions.

    Returns:
        A decorator.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            key_parts = key_args(*args, **kwargs) if key_args is not None else (args, kwargs)
            key = make_cache_key(namespace, *key_parts[0], **key_parts[1])
            cached = cache.get(key, _MISSING)
            if cached is not _MISSING:
                logger.debug("Result cache hit for {}", namespace)
                return cached  # type: ignore[no-any-return]
            result = await func(*args, **kwargs)
            cache.set(key, result)
            return result

        return wrapper

    return decorator
