"""Option store implementations backed by Redis or process memory."""

import copy
import json
import logging
import os
from typing import Any, Protocol

import redis

logger = logging.getLogger(__name__)


class OptionStoreError(Exception):
    """Exception raised when an option cannot be read or written."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Option store failure for '{key}': {reason}")


class OptionStore(Protocol):
    """Minimal get/set interface over named, JSON-serializable values."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class RedisOptionStore:
    """
    Redis-backed option store.

    Each option is stored as a single JSON document, so callers always
    read and write the whole value (no per-field granularity).
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        namespace: str = "voicenotes",
    ):
        if client is None:
            client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                db=int(os.getenv("REDIS_DB", "1")),
                decode_responses=True,
            )
        self.redis = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        """Get the namespaced Redis key for an option."""
        return f"{self.namespace}:option:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read an option.

        Args:
            key: Option name
            default: Value returned when the option has never been set

        Returns:
            The decoded option value or default
        """
        try:
            raw = self.redis.get(self._key(key))
        except redis.RedisError as e:
            raise OptionStoreError(key, str(e)) from e

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise OptionStoreError(key, f"stored value is not valid JSON ({e})") from e

    def set(self, key: str, value: Any) -> None:
        """Write an option, replacing any previous value."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise OptionStoreError(key, f"value is not JSON serializable ({e})") from e

        try:
            self.redis.set(self._key(key), payload)
        except redis.RedisError as e:
            raise OptionStoreError(key, str(e)) from e


class InMemoryOptionStore:
    """Dictionary-backed option store for tests and local development."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._options: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._options:
            return default
        return copy.deepcopy(self._options[key])

    def set(self, key: str, value: Any) -> None:
        self._options[key] = copy.deepcopy(value)


def create_option_store(
    backend: str,
    redis_host: str = "localhost",
    redis_port: int = 6379,
    redis_db: int = 1,
    namespace: str = "voicenotes",
) -> OptionStore:
    """
    Build an option store for the configured backend.

    Args:
        backend: 'redis' or 'memory'
        redis_host: Redis host (redis backend only)
        redis_port: Redis port (redis backend only)
        redis_db: Redis database number (redis backend only)
        namespace: Key prefix for stored options

    Returns:
        An OptionStore implementation
    """
    if backend == "memory":
        logger.warning("Using in-memory option store, rate limits reset on restart")
        return InMemoryOptionStore()

    if backend == "redis":
        client = redis.Redis(
            host=redis_host,
            port=redis_port,
            db=redis_db,
            decode_responses=True,
        )
        return RedisOptionStore(client, namespace=namespace)

    raise ValueError(f"Unknown option store backend: {backend}")
