"""
Payload schemas for cached reference data.

Only domains whose shape is stable enough to be worth checking get a schema.
Validation is read-only: the cached value is returned exactly as stored, the
schema just decides whether it can be trusted.
"""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from storefront_cache.core.config.constants import CacheDomain


class OptionItem(BaseModel):
    """One entry of a size, age, gender or category option list."""

    model_config = ConfigDict(extra="allow")

    id: int | str
    name: str
    slug: str | None = None
    display_order: int | None = None


class ProductPayload(BaseModel):
    """A cached product. Only the identity is checked."""

    model_config = ConfigDict(extra="allow")

    id: int | str


class SearchSuggestionsPayload(BaseModel):
    """Cached value of a search suggestion lookup."""

    model_config = ConfigDict(extra="allow")

    suggestions: list = Field(default_factory=list)


_OPTION_LIST = TypeAdapter(list[OptionItem])

PAYLOAD_SCHEMAS: dict[CacheDomain, TypeAdapter] = {
    CacheDomain.SIZE_OPTIONS: _OPTION_LIST,
    CacheDomain.AGE_OPTIONS: _OPTION_LIST,
    CacheDomain.GENDER_OPTIONS: _OPTION_LIST,
    CacheDomain.CATEGORY_OPTIONS: _OPTION_LIST,
    CacheDomain.PRODUCT: TypeAdapter(ProductPayload),
    CacheDomain.SEARCH_SUGGESTIONS: TypeAdapter(SearchSuggestionsPayload),
}


def schema_for(domain: CacheDomain) -> TypeAdapter | None:
    return PAYLOAD_SCHEMAS.get(domain)
