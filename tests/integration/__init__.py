"""
Integration tests.

Component interactions across several cache managers sharing one store:
- Micro-cache and KV tiers across processes
- Invalidation visibility between processes
- Circuit breaker behaviour during a KV outage and recovery
"""
