from threading import RLock

from cachetools import TTLCache

cache_lock = RLock()

# user documents looked up by the auth dependency
user_cache = TTLCache(maxsize=1000, ttl=5 * 60)

# paginated video lists, keyed "<userId>_<page>_<limit>"
video_list_cache = TTLCache(maxsize=2000, ttl=2 * 60)


def delete_matching(cache: TTLCache, fragment: str) -> int:
    """Drop every key containing `fragment`; returns how many were removed."""
    with cache_lock:
        keys = [key for key in list(cache.keys()) if fragment in str(key)]
        for key in keys:
            cache.pop(key, None)
    return len(keys)
