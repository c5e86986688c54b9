"""Cache abstractions for root-domain redirect entries."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Protocol

import redis

logger = logging.getLogger(__name__)

_KEY_PREFIX = "root"


def root_redirect_key(domain: str) -> str:
    return f"{_KEY_PREFIX}:{domain}"


class RedirectCache(Protocol):
    """Protocol describing cache operations used on plan downgrades."""

    def delete_root_redirects(self, domains: Iterable[str]) -> int:
        ...


class RedisRedirectCache:
    """Redis-backed cache removing redirects in a single pipelined call."""

    def __init__(self, client: "redis.Redis") -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisRedirectCache":
        return cls(redis.from_url(url, decode_responses=True))

    def delete_root_redirects(self, domains: Iterable[str]) -> int:
        keys = [root_redirect_key(domain) for domain in domains if domain]
        if not keys:
            return 0
        pipeline = self._client.pipeline()
        for key in keys:
            pipeline.delete(key)
        results = pipeline.execute()
        removed = sum(int(result or 0) for result in results)
        logger.debug("Removed %s of %s root redirects", removed, len(keys))
        return removed


class InMemoryRedirectCache:
    """Simple in-memory cache suitable for tests and local development."""

    def __init__(self, entries: Optional[Dict[str, str]] = None) -> None:
        self._entries: Dict[str, str] = dict(entries or {})
        self.deleted_keys: List[str] = []

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def delete_root_redirects(self, domains: Iterable[str]) -> int:
        removed = 0
        for domain in domains:
            if not domain:
                continue
            key = root_redirect_key(domain)
            self.deleted_keys.append(key)
            if self._entries.pop(key, None) is not None:
                removed += 1
        return removed


__all__ = [
    "InMemoryRedirectCache",
    "RedirectCache",
    "RedisRedirectCache",
    "root_redirect_key",
]
