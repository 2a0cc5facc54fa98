"""
Health Check Routes - Educational Documentation
================================================

KUBERNETES HEALTH PROBES:
--------------------------
1. LIVENESS (/health/live): "Is the process running?" Never checks
   dependencies.
2. READINESS (/health/ready): "Can this instance serve traffic?"

WHY A KV OUTAGE DOES NOT FAIL READINESS:
----------------------------------------
Every cached read falls back to origin, so an instance with Redis down still
serves correct responses, only slower. The cache layer reports "degraded"
in that case and readiness stays 200. Readiness answers 503 only when no
origin source is configured, because then the instance cannot serve any
cached endpoint at all.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from storefront_cache.application.api.dependencies import CacheManagerDep, OriginSourcesDep
from storefront_cache.application.api.models.cache import HealthResponse

router = APIRouter(prefix="/health", tags=["Health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("", response_model=HealthResponse)
async def health_check(cache: CacheManagerDep):
    """
    Quick health check for load balancers.

    Returns:
        HealthResponse: "healthy" or "degraded" plus the cache component
    """
    cache_health = await cache.health_check()
    return HealthResponse(
        status=cache_health["status"],
        timestamp=_now(),
        components={"cache": cache_health},
    )


@router.get("/live")
async def liveness_probe():
    return {"status": "alive", "timestamp": _now()}


@router.get("/ready", response_model=HealthResponse)
async def readiness_probe(cache: CacheManagerDep, sources: OriginSourcesDep):
    """
    Readiness probe.

    Raises:
        HTTPException: 503 if no origin source is configured
    """
    cache_health = await cache.health_check()
    configured = sorted(domain.value for domain in sources.configured())
    components = {
        "cache": cache_health,
        "kv_circuit": cache.breaker.stats(),
        "origin_sources": configured,
    }

    if not configured:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "timestamp": _now(), "components": components},
        )

    return HealthResponse(status="ready", timestamp=_now(), components=components)
