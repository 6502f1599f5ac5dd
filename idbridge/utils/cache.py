"""Cache Utilities Module."""

from collections.abc import Callable
from functools import wraps
from typing import Any

import aiocache

__all__ = ["gattl_cache", "generic_hash"]


def gattl_cache(ttl: int = 60, key: Callable[..., Any] | None = None):
    """Decorator for functions to cache results using a generic, async-aware TTL cache.

    This decorator can be used with any object, even if it's unhashable,
    because it uses the generic_hash function to compute the cache key.

    It uses `aiocache` as the backend to ensure compatibility with async functions.

    Args:
        ttl (int): Time-to-live for cached items in seconds. Defaults to 60.
        key (Callable | None): Optional callable receiving the decorated
            function's arguments and returning the value to hash as the key.
            Defaults to hashing every argument.
    """

    def decorator(func):
        cache_alias = f"gattl_{func.__module__}.{func.__qualname__}_{id(func)}"

        aiocache.caches.add(cache_alias, {"cache": aiocache.Cache.MEMORY, "ttl": ttl})

        def key_builder_adapter(f, *args, **kwargs):
            if key is not None:
                return generic_hash(key(*args, **kwargs))
            return generic_hash(*args, **kwargs)

        @wraps(func)
        @aiocache.cached(alias=cache_alias, key_builder=key_builder_adapter)
        async def wrapper(*args, **kwargs):
            return await func(*args, **kwargs)

        return wrapper

    return decorator


def generic_hash(*args, **kwargs):
    """Recursively computes a hash for any Python object(s).

    If a single object is passed (and no keyword arguments), its hash is computed.
    If multiple positional and/or keyword arguments are passed, a combined hash
    is returned based on all of them.

    For built-in hashable objects, the built-in hash is used.
    For unhashable objects (e.g. lists, dicts, sets), they are converted into
    a hashable representation by processing their elements.
    """
    visited_ids = set()

    if not kwargs and len(args) == 1:
        return _generic_hash(args[0], visited_ids)
    args_hash = _generic_hash(args, visited_ids)
    kwargs_hash = _generic_hash(tuple(sorted(kwargs.items())), visited_ids)
    return hash((args_hash, kwargs_hash))


def _generic_hash(obj: Any, _visited_ids: set[int]) -> int:
    obj_id = id(obj)
    if obj_id in _visited_ids:
        return hash("<cycle>")

    _visited_ids.add(obj_id)
    try:
        h = hash(obj)
    except TypeError:
        if isinstance(obj, list | tuple):
            h = hash(tuple(_generic_hash(item, _visited_ids) for item in obj))
        elif isinstance(obj, set):
            h = hash(frozenset(_generic_hash(item, _visited_ids) for item in obj))
        elif isinstance(obj, dict):
            h = hash(
                tuple(
                    sorted(
                        (_generic_hash(k, _visited_ids), _generic_hash(v, _visited_ids))
                        for k, v in obj.items()
                    )
                )
            )
        elif hasattr(obj, "__dict__"):
            h = _generic_hash(obj.__dict__, _visited_ids)
        elif hasattr(obj, "__iter__"):
            h = hash(tuple(_generic_hash(item, _visited_ids) for item in obj))
        else:
            h = hash(str(obj))
    _visited_ids.remove(obj_id)
    return h
