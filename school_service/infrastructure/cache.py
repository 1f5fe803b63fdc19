import json
from typing import Optional, Any

import redis
import structlog

from ..config import settings

logger = structlog.get_logger()

_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    return _redis_client


def list_key(namespace: str, **params) -> str:
    """Ключ страницы списка: namespace:list:p1=v1:p2=v2 (параметры по алфавиту, None пустой)."""
    parts = [f"{name}={'' if value is None else value}" for name, value in sorted(params.items())]
    return ":".join([namespace, "list", *parts])


def get_cache(key: str) -> Optional[Any]:
    """Значение из кэша или None; ошибка Redis считается промахом"""
    try:
        value = get_redis().get(key)
        if value:
            return json.loads(value)
    except Exception as exc:
        logger.warning("cache_get_failed", key=key, error=str(exc))
    return None


def set_cache(key: str, value: Any, ttl: int | None = None) -> bool:
    try:
        get_redis().setex(key, ttl or settings.CACHE_TTL, json.dumps(value, ensure_ascii=False))
        return True
    except Exception as exc:
        logger.warning("cache_set_failed", key=key, error=str(exc))
        return False


def invalidate(namespace: str) -> int:
    """Drops every cached page of the namespace; returns the number of deleted keys."""
    try:
        client = get_redis()
        keys = list(client.scan_iter(match=f"{namespace}:*"))
        if keys:
            return client.delete(*keys)
        return 0
    except Exception as exc:
        logger.warning("cache_invalidate_failed", namespace=namespace, error=str(exc))
        return 0
