"""
Core Interfaces Module

Protocols for core collaborators, enabling dependency injection and testing.

Components:
-----------
- **cache.py**: KeyValueStore protocol and its in-memory implementation

Usage:
------
```python
from storefront_cache.core.interfaces import KeyValueStore

async def read(store: KeyValueStore, key: str) -> str | None:
    return await store.get(key)
```
"""

from storefront_cache.core.interfaces.cache import InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
]
