"""
Itinerary editor state for the admin back-office.

ItineraryDraft is an immutable form model: every edit returns a new draft
with new lists, the original is never touched. Day numbers stay 1-based and
contiguous after any structural change. cleaned() produces what gets sent
upstream: blank list entries dropped, empty days dropped, days renumbered.
"""

from typing import Any, Dict, List, Optional

from tripsee.schemas import HotelImage, Itinerary, ItineraryDay, Package


class DraftValidationError(ValueError):
    """A required field is missing; the message is shown to the admin as-is."""


def _renumbered(days: List[ItineraryDay]) -> List[ItineraryDay]:
    return [d.model_copy(update={"day": i + 1}) for i, d in enumerate(days)]


def _non_blank(values: List[str]) -> List[str]:
    return [v.strip() for v in values if v and v.strip()]


def _replace_at(values: list, index: int, value) -> list:
    if not 0 <= index < len(values):
        raise IndexError(f"index {index} out of range")
    return [value if i == index else v for i, v in enumerate(values)]


def _remove_at(values: list, index: int) -> list:
    if not 0 <= index < len(values):
        raise IndexError(f"index {index} out of range")
    return [v for i, v in enumerate(values) if i != index]


class ItineraryDraft(Itinerary):

    @classmethod
    def blank(cls, destination: str = "") -> "ItineraryDraft":
        return cls(
            destination=destination,
            hotel_images=[HotelImage()],
            days=[ItineraryDay(day=1)],
        )

    @classmethod
    def from_itinerary(cls, itinerary: Itinerary) -> "ItineraryDraft":
        return cls.model_validate(itinerary.model_dump())

    def _with(self, **changes: Any) -> "ItineraryDraft":
        return self.model_copy(update=changes)

    def update(self, **fields: Any) -> "ItineraryDraft":
        """Set top-level scalar fields (title, duration, overview, hotel_name ...)."""
        return self._with(**fields)

    def select_package(self, package: Package) -> "ItineraryDraft":
        """Link to a package and take over its hotel rating (4 when it has none)."""
        rating = str(package.hotel_rating) if package.hotel_rating is not None else "4"
        return self._with(package_id=package.id, hotel_rating=rating)

    # ------------------------------------------------------------------
    # Days
    # ------------------------------------------------------------------

    def add_day(self) -> "ItineraryDraft":
        return self._with(days=self.days + [ItineraryDay(day=len(self.days) + 1)])

    def remove_day(self, index: int) -> "ItineraryDraft":
        """Remove a day and renumber; the last remaining day cannot be removed."""
        if len(self.days) <= 1:
            return self
        return self._with(days=_renumbered(_remove_at(self.days, index)))

    def update_day(self, index: int, **fields: Any) -> "ItineraryDraft":
        fields.pop("day", None)
        day = self.days[index].model_copy(update=fields)
        return self._with(days=_replace_at(self.days, index, day))

    def _with_day_list(self, index: int, name: str, values: List[str]) -> "ItineraryDraft":
        return self.update_day(index, **{name: values})

    def add_activity(self, day_index: int, text: str = "") -> "ItineraryDraft":
        return self._with_day_list(day_index, "activities", self.days[day_index].activities + [text])

    def remove_activity(self, day_index: int, index: int) -> "ItineraryDraft":
        return self._with_day_list(day_index, "activities", _remove_at(self.days[day_index].activities, index))

    def update_activity(self, day_index: int, index: int, text: str) -> "ItineraryDraft":
        return self._with_day_list(day_index, "activities", _replace_at(self.days[day_index].activities, index, text))

    def add_meal(self, day_index: int, text: str = "") -> "ItineraryDraft":
        return self._with_day_list(day_index, "meals", self.days[day_index].meals + [text])

    def remove_meal(self, day_index: int, index: int) -> "ItineraryDraft":
        return self._with_day_list(day_index, "meals", _remove_at(self.days[day_index].meals, index))

    def update_meal(self, day_index: int, index: int, text: str) -> "ItineraryDraft":
        return self._with_day_list(day_index, "meals", _replace_at(self.days[day_index].meals, index, text))

    # ------------------------------------------------------------------
    # Hotel images
    # ------------------------------------------------------------------

    def add_hotel_image(self) -> "ItineraryDraft":
        return self._with(hotel_images=self.hotel_images + [HotelImage()])

    def remove_hotel_image(self, index: int) -> "ItineraryDraft":
        if len(self.hotel_images) <= 1:
            return self
        return self._with(hotel_images=_remove_at(self.hotel_images, index))

    def update_hotel_image(self, index: int, **fields: Any) -> "ItineraryDraft":
        image = self.hotel_images[index].model_copy(update=fields)
        return self._with(hotel_images=_replace_at(self.hotel_images, index, image))

    # ------------------------------------------------------------------
    # Inclusions / exclusions
    # ------------------------------------------------------------------

    def add_inclusion(self, text: str = "") -> "ItineraryDraft":
        return self._with(inclusions=self.inclusions + [text])

    def remove_inclusion(self, index: int) -> "ItineraryDraft":
        return self._with(inclusions=_remove_at(self.inclusions, index))

    def update_inclusion(self, index: int, text: str) -> "ItineraryDraft":
        return self._with(inclusions=_replace_at(self.inclusions, index, text))

    def add_exclusion(self, text: str = "") -> "ItineraryDraft":
        return self._with(exclusions=self.exclusions + [text])

    def remove_exclusion(self, index: int) -> "ItineraryDraft":
        return self._with(exclusions=_remove_at(self.exclusions, index))

    def update_exclusion(self, index: int, text: str) -> "ItineraryDraft":
        return self._with(exclusions=_replace_at(self.exclusions, index, text))

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def validate_required(self, require_package: bool = False) -> None:
        if not self.title.strip():
            raise DraftValidationError("Please enter an itinerary title")
        if not self.duration.strip():
            raise DraftValidationError("Please enter the duration")
        if not self.overview.strip():
            raise DraftValidationError("Please enter an overview")
        if require_package and not self.package_id:
            raise DraftValidationError("Please select a package to link this itinerary to")

    def cleaned(self, destination: Optional[str] = None) -> "ItineraryDraft":
        days = [
            d.model_copy(update={"activities": _non_blank(d.activities), "meals": _non_blank(d.meals)})
            for d in self.days
            if d.title.strip() or d.accommodation.strip()
        ]
        return self._with(
            destination=destination or self.destination,
            days=_renumbered(days),
            inclusions=_non_blank(self.inclusions),
            exclusions=_non_blank(self.exclusions),
            hotel_images=[img for img in self.hotel_images if not img.is_blank()],
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the upstream create/update calls (full replace)."""
        return self.model_dump(
            by_alias=True,
            mode="json",
            exclude={"id", "created_at", "updated_at"},
        )
