"""
Cache Warming Routes
====================

POST /cache/warm re-fetches every configured option list from origin and
writes it to the KV store (and the micro-cache for sizes, ages, genders).
Answers 207 when some domains failed, with the error text per domain.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefront_cache.application.api.dependencies import WarmerDep
from storefront_cache.application.api.models.cache import WarmResponse

router = APIRouter(prefix="/cache", tags=["Cache"])


@router.post("/warm", response_model=WarmResponse, responses={207: {"model": WarmResponse}})
async def warm_cache(warmer: WarmerDep):
    report = await warmer.warm()
    body = WarmResponse(**report.to_dict())
    return JSONResponse(status_code=200 if report.ok else 207, content=body.model_dump())


@router.get("/warm")
async def warm_cache_usage():
    return {"message": "Cache warming endpoint", "usage": "POST to warm all caches"}
