from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

MAX_TOP_K = 20


def clamp_top_k(value: int) -> int:
    return max(1, min(MAX_TOP_K, value))


class QueryMode(str, Enum):
    keyword_search = "keyword_search"
    proximity_search = "proximity_search"


class PriceLevel(str, Enum):
    free = "PRICE_LEVEL_FREE"
    inexpensive = "PRICE_LEVEL_INEXPENSIVE"
    moderate = "PRICE_LEVEL_MODERATE"
    expensive = "PRICE_LEVEL_EXPENSIVE"
    very_expensive = "PRICE_LEVEL_VERY_EXPENSIVE"


class Dietary(str, Enum):
    vegetarian_only = "veg"
    non_vegetarian_only = "nonveg"
    either = "both"


class Coordinate(BaseModel):
    latitude: float
    longitude: float

    model_config = {"frozen": True}


class ServiceFlags(BaseModel):
    """Delivery / dine-in / takeout flags. ``None`` means unknown or not asked."""

    delivery: bool | None = None
    dine_in: bool | None = Field(default=None, alias="dineIn")
    takeout: bool | None = None

    model_config = {"populate_by_name": True}

    def stated(self) -> dict[str, bool]:
        """Return only the flags that carry a value."""
        return {k: v for k, v in self.model_dump().items() if v is not None}


class SearchPreferences(BaseModel):
    center: Coordinate | None = None
    radius_meters: float = Field(default=2000.0, gt=0)
    open_now: bool = False
    min_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    cuisine: str = ""
    price_levels: set[PriceLevel] = Field(default_factory=set)
    dietary: Dietary = Dietary.either
    services: ServiceFlags = Field(default_factory=ServiceFlags)
    top_k: int = 5

    @field_validator("top_k")
    @classmethod
    def _clamp_top_k(cls, value: int) -> int:
        return clamp_top_k(value)


class SearchRequest(BaseModel):
    """Body of ``POST /api/restaurants``. Accepts camelCase or snake_case keys."""

    lat: float = Field(strict=True)
    lng: float = Field(strict=True)
    radius_meters: float = Field(default=2000.0, gt=0, alias="radiusMeters")
    open_now: bool = Field(default=False, alias="openNow")
    min_rating: float = Field(default=0.0, ge=0.0, le=5.0, alias="minRating")
    cuisine: str = ""
    price_levels: list[PriceLevel] = Field(default_factory=list, alias="priceLevels")
    dietary: Dietary = Dietary.either
    services: ServiceFlags = Field(default_factory=ServiceFlags)
    top_k: int = Field(default=5, alias="topK")

    model_config = {"populate_by_name": True}

    def to_preferences(self) -> SearchPreferences:
        return SearchPreferences(
            center=Coordinate(latitude=self.lat, longitude=self.lng),
            radius_meters=self.radius_meters,
            open_now=self.open_now,
            min_rating=self.min_rating,
            cuisine=self.cuisine.strip(),
            price_levels=set(self.price_levels),
            dietary=self.dietary,
            services=self.services,
            top_k=self.top_k,
        )


class Candidate(BaseModel):
    """A place record as returned by the places provider for one search."""

    id: str = ""
    display_name: str = ""
    coordinate: Coordinate | None = None
    rating: float | None = None
    rating_count: int | None = None
    price_level: str | None = None
    open_now: bool | None = None
    services: ServiceFlags = Field(default_factory=ServiceFlags)
    serves_vegetarian: bool | None = None
    address: str = ""
    maps_uri: str = ""
    photos: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)


class ScoredCandidate(BaseModel):
    candidate: Candidate
    score: float
    reason: str | None = None
    photo_urls: list[str] = Field(default_factory=list)


class RerankEntry(BaseModel):
    id: str
    reason: str


class RerankAnnotation(BaseModel):
    rationale: str
    reordered: list[RerankEntry]


class SearchResponse(BaseModel):
    results: list[ScoredCandidate]
    ai: RerankAnnotation | None = None


class GeocodeRequest(BaseModel):
    query: str = ""


class GeocodeResponse(BaseModel):
    lat: float
    lng: float
    formatted: str | None = None
