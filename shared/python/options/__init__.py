"""Key-value option store used for small persisted settings blobs."""

from .store import (
    InMemoryOptionStore,
    OptionStore,
    OptionStoreError,
    RedisOptionStore,
    create_option_store,
)

__all__ = [
    "create_option_store",
    "InMemoryOptionStore",
    "OptionStore",
    "OptionStoreError",
    "RedisOptionStore",
]
