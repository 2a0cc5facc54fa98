"""
Reference-Data Option Routes
============================

Public endpoints serving the option lists used by storefront filters:

    GET /sizes/options       micro-cache -> KV -> origin
    GET /ages/options        micro-cache -> KV -> origin
    GET /genders/options     micro-cache -> KV -> origin
    GET /categories/options  KV -> origin

Every successful response carries X-Cache-Status, X-Data-Source and a
CDN-friendly Cache-Control header. An origin failure answers 500 with
``{"error": "Failed to retrieve <name> options"}``; an origin that was never
configured answers 503.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefront_cache.application.api.dependencies import OptionsCacheDep, OriginSourcesDep
from storefront_cache.application.api.models.cache import ErrorResponse
from storefront_cache.application.services.origin_sources import OriginSources
from storefront_cache.core.config.constants import OPTIONS_CACHE_CONTROL, CacheDomain
from storefront_cache.core.exceptions import StorefrontCacheError
from storefront_cache.core.logging.logger import get_logger
from storefront_cache.infrastructure.cache.cache_service import OptionsCacheService

logger = get_logger(__name__)

router = APIRouter(tags=["Options"])

_ERROR_RESPONSES = {500: {"model": ErrorResponse}, 503: {"description": "Origin not configured"}}


async def _serve_options(
    domain: CacheDomain, label: str, options: OptionsCacheService, sources: OriginSources
) -> JSONResponse:
    fetch = sources.fetcher_for(domain)

    try:
        result = await options.options(domain, fetch)
    except StorefrontCacheError:
        raise
    except Exception as e:
        logger.error(
            f"Failed to retrieve {label} options",
            domain=domain.value,
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(status_code=500, content={"error": f"Failed to retrieve {label} options"})

    return JSONResponse(content=result.data, headers=result.headers(OPTIONS_CACHE_CONTROL))


@router.get("/sizes/options", responses=_ERROR_RESPONSES)
async def size_options(options: OptionsCacheDep, sources: OriginSourcesDep):
    """Size options, ordered by display order."""
    return await _serve_options(CacheDomain.SIZE_OPTIONS, "size", options, sources)


@router.get("/ages/options", responses=_ERROR_RESPONSES)
async def age_options(options: OptionsCacheDep, sources: OriginSourcesDep):
    return await _serve_options(CacheDomain.AGE_OPTIONS, "age", options, sources)


@router.get("/genders/options", responses=_ERROR_RESPONSES)
async def gender_options(options: OptionsCacheDep, sources: OriginSourcesDep):
    return await _serve_options(CacheDomain.GENDER_OPTIONS, "gender", options, sources)


@router.get("/categories/options", responses=_ERROR_RESPONSES)
async def category_options(options: OptionsCacheDep, sources: OriginSourcesDep):
    """Category options; not held in the micro-cache."""
    return await _serve_options(CacheDomain.CATEGORY_OPTIONS, "category", options, sources)
