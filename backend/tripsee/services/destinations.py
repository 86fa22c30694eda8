"""
Destination profiles.

Every destination page runs the same catalog pipeline; what differs is a
handful of parameters: the default city facets, city aliases, the
"popularity" ranking of package types, page size, the fallback price range
and how a missing hotel rating is treated.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

DURATION_BUCKETS: Tuple[str, ...] = ("3 Nights", "4 Nights", "5 Nights", "6 Nights", "7 Nights")
STAR_RATINGS: Tuple[int, ...] = (3, 4, 5)


@dataclass(frozen=True)
class DestinationProfile:
    slug: str
    name: str
    default_cities: Tuple[str, ...]
    # selected city -> location tokens that also count as that city
    city_aliases: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    # raw location token -> the city names it stands for
    location_rewrites: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    popularity: Dict[str, int] = field(default_factory=dict)
    page_size: int = 5
    default_price_range: Tuple[int, int] = (0, 150000)
    # Rating shown on cards when a package has none
    display_hotel_rating: Optional[int] = 4
    # Whether that display default also takes part in rating filters/facets
    match_default_rating: bool = False
    substring_city_match: bool = False
    # Itineraries go to the shared endpoint and must be linked to a package
    shared_itinerary_route: bool = False

    def aliases_for(self, city: str) -> Tuple[str, ...]:
        return (city,) + self.city_aliases.get(city, ())

    def popularity_rank(self, package_type: str) -> int:
        """Known types rank by table order; unseen types sort after all of them."""
        return self.popularity.get(package_type, len(self.popularity) + 1)

    def summary(self) -> Dict[str, object]:
        return {
            "slug": self.slug,
            "name": self.name,
            "pageSize": self.page_size,
            "cities": list(self.default_cities),
            "durations": list(DURATION_BUCKETS),
            "ratings": list(STAR_RATINGS),
            "priceRange": {"min": self.default_price_range[0], "max": self.default_price_range[1]},
        }


PROFILES: Dict[str, DestinationProfile] = {
    "bali": DestinationProfile(
        slug="bali",
        name="Bali",
        default_cities=("Kuta", "Ubud", "Seminyak", "Umalas", "Nusa Penida", "Gili T", "Benoa", "Jineng"),
        popularity={"Premium": 1, "Honeymoon": 2, "With Gili T": 3, "Basic": 4},
        default_price_range=(0, 136500),
        shared_itinerary_route=True,
    ),
    "singapore": DestinationProfile(
        slug="singapore",
        name="Singapore",
        default_cities=("Singapore City", "Sentosa", "Marina Bay", "Chinatown",
                        "Little India", "Orchard Road", "Clarke Quay"),
        city_aliases={"Singapore City": ("Downtown Singapore", "Singapore Island")},
        popularity={"Luxury": 1, "Family": 2, "Ultimate": 3, "Complete": 4, "Quick": 5},
        default_price_range=(55000, 120000),
        match_default_rating=True,
    ),
    "vietnam": DestinationProfile(
        slug="vietnam",
        name="Vietnam",
        default_cities=("Ho Chi Minh", "Da Nang", "Hanoi", "Ha Long Bay", "Krong Siem Reap",
                        "Phnom Penh", "Hoi An", "Phu Quoc", "Sa Pa", "Mui Ne", "Nha Trang", "Hue"),
        city_aliases={"Ha Long Bay": ("Ha Long",), "Ho Chi Minh": ("Ho Chi Minh City",)},
        popularity={"Classic": 1, "Cultural": 2, "Luxury": 3, "Complete": 4, "Quick": 5},
        default_price_range=(0, 100000),
        match_default_rating=True,
    ),
    "andaman": DestinationProfile(
        slug="andaman",
        name="Andaman",
        default_cities=("Port Blair", "Havelock Island", "Neil Island", "Baratang",
                        "Ross Island", "Viper Island", "North Bay"),
        page_size=3,
        default_price_range=(38000, 95000),
        display_hotel_rating=3,
        match_default_rating=True,
        substring_city_match=True,
    ),
    "thailand": DestinationProfile(
        slug="thailand",
        name="Thailand",
        default_cities=("Bangkok", "Phuket", "Chiang Mai", "Krabi", "Koh Samui",
                        "Ayutthaya", "Pattaya", "Hua Hin"),
        popularity={"Premium": 1, "Cultural": 2, "Beach": 3, "Adventure": 4, "Complete": 5, "Budget": 6},
        default_price_range=(65000, 120000),
    ),
    "maldives": DestinationProfile(
        slug="maldives",
        name="Maldives",
        default_cities=("Male", "Hulhumale", "Maafushi", "Gulhi", "Thulusdhoo", "Dhiffushi", "Ukulhas"),
        location_rewrites={
            "Private Resort Island": ("Resort Island",),
            "3 Different Resorts": ("Male", "Resort Island", "Multiple Atolls"),
        },
        popularity={"Luxury": 1, "Honeymoon": 2, "Ultimate": 3, "Adventure": 4, "Quick": 5},
        default_price_range=(120000, 300000),
        match_default_rating=True,
    ),
    "malaysia": DestinationProfile(
        slug="malaysia",
        name="Malaysia",
        default_cities=("Kuala Lumpur", "Penang", "Langkawi", "Malacca",
                        "Cameron Highlands", "Taman Negara", "Borneo"),
        city_aliases={"Genting Highlands": ("Genting",), "KL": ("Kuala Lumpur",)},
        popularity={"Classic": 1, "Beach": 2, "Luxury": 3, "Complete": 4, "Quick": 5},
        default_price_range=(42000, 105000),
        display_hotel_rating=3,
        match_default_rating=True,
    ),
    "dubai": DestinationProfile(
        slug="dubai",
        name="Dubai",
        default_cities=("Dubai City", "Abu Dhabi", "Sharjah", "Ajman", "Fujairah",
                        "Ras Al Khaimah", "Umm Al Quwain"),
        city_aliases={"Dubai City": ("Dubai",)},
        popularity={"Luxury": 1, "Family": 2, "Ultimate": 3, "Adventure": 4, "Shopping": 5, "Quick": 6},
        default_price_range=(45000, 150000),
        match_default_rating=True,
    ),
}


def get_profile(slug: str) -> Optional[DestinationProfile]:
    return PROFILES.get((slug or "").strip().lower())


def all_profiles() -> List[DestinationProfile]:
    return list(PROFILES.values())
