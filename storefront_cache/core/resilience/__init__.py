"""
Resilience Module

Components that keep a slow or failing KV store from ever failing a request:

- KVCircuitBreaker: skips the KV store for a cooldown after repeated failures
- BackgroundTasks: owns fire-and-forget write-backs and refreshes
- bounded_wait: races a KV call against a deadline and abandons the loser
- create_retry_decorator: Tenacity retry policy for connection establishment
"""

from .background_tasks import BackgroundTasks, bounded_wait
from .circuit_breaker import KVCircuitBreaker, create_retry_decorator

__all__ = [
    "BackgroundTasks",
    "KVCircuitBreaker",
    "bounded_wait",
    "create_retry_decorator",
]
