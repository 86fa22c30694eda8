"""
Record schemas shared by the catalog pipeline, the upstream client and the API.

Packages and itineraries are owned by the upstream admin API; these models
only describe what this service reads from it. Field aliases accept the
spellings the upstream uses across destinations (``name``/``title``,
``duration``/``days``, ``_id``/``id`` ...).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tripsee.services.duration import extract_nights, format_duration
from tripsee.services.pricing import format_price, parse_price


def _coerce_rating(value: Any) -> Optional[int]:
    """Hotel ratings arrive as ints, floats or strings ("4"); anything else is absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = int(float(value))
    except (TypeError, ValueError):
        return None
    return rating if rating > 0 else None


class Package(BaseModel):
    """A sellable travel product as returned by the upstream packages endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    title: str = Field(default="", validation_alias=AliasChoices("title", "name"))
    location: str = ""
    days: str = Field(default="", validation_alias=AliasChoices("days", "duration"))
    price: Union[int, float, str, None] = None
    type: str = Field(default="", validation_alias=AliasChoices("type", "category"))
    hotel_rating: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("hotelRating", "hotel_rating")
    )
    features: List[str] = Field(default_factory=list)
    highlights: Union[str, List[str], None] = None
    description: str = ""
    image: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("title", "location", "days", "type", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("hotel_rating", mode="before")
    @classmethod
    def _parse_rating(cls, value: Any) -> Optional[int]:
        return _coerce_rating(value)

    @field_validator("features", mode="before")
    @classmethod
    def _features_list(cls, value: Any) -> List[str]:
        if not value:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value if v is not None]

    @property
    def price_value(self) -> int:
        return parse_price(self.price)

    @property
    def nights(self) -> str:
        return extract_nights(self.days)

    @property
    def highlights_text(self) -> str:
        if not self.highlights:
            return ""
        if isinstance(self.highlights, str):
            return self.highlights
        return ", ".join(h for h in self.highlights if h)

    def to_public(self, display_rating: Optional[int] = None) -> Dict[str, Any]:
        """Card payload for destination pages."""
        rating = self.hotel_rating if self.hotel_rating is not None else display_rating
        return {
            "id": self.id,
            "title": self.title,
            "location": self.location,
            "days": format_duration(self.days),
            "nights": self.nights,
            "price": self.price_value,
            "priceDisplay": format_price(self.price_value),
            "type": self.type,
            "hotelRating": rating,
            "features": list(self.features),
            "highlights": self.highlights_text,
            "description": self.description,
            "image": self.image,
        }


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class HotelImage(CamelModel):
    src: str = ""
    alt: str = ""
    name: str = ""
    description: str = ""

    def is_blank(self) -> bool:
        return not self.src.strip()


class ItineraryDay(CamelModel):
    day: int = 1
    title: str = ""
    activities: List[str] = Field(default_factory=list)
    meals: List[str] = Field(default_factory=list)
    accommodation: str = ""


class Itinerary(CamelModel):
    """Day-by-day plan bound 1:1 to a package through ``packageId``."""

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    package_id: Optional[str] = None
    destination: str = ""
    title: str = ""
    duration: str = ""
    overview: str = ""
    hotel_name: str = ""
    hotel_rating: str = ""
    hotel_description: str = ""
    hotel_images: List[HotelImage] = Field(default_factory=list)
    days: List[ItineraryDay] = Field(default_factory=list)
    inclusions: List[str] = Field(default_factory=list)
    exclusions: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", "package_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("hotel_rating", mode="before")
    @classmethod
    def _rating_as_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
