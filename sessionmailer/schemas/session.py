"""Request-scoped data model shared by the extractor, compositor and API.

JSON uses camelCase (``timeSlots``, ``firstImage``); Python code uses the
snake_case attribute names. Both spellings are accepted on input.
"""

from pydantic import BaseModel, Field, computed_field
from pydantic.alias_generators import to_camel

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class TimeSlot(BaseModel):
    time: str
    booking_url: str | None = None

    model_config = _CAMEL


class DateTimePair(BaseModel):
    """A date as listed on the booking page with the times offered under it."""

    date: str
    times: list[str] = []

    model_config = _CAMEL


class SessionData(BaseModel):
    """Structured content extracted from one booking-page URL.

    ``title``, ``description`` and ``images`` are never empty: when
    extraction (or the fetch) fails they carry fallback content, and
    ``error`` says why.
    """

    url: str
    title: str
    description: str
    price: str
    date: str
    location: str
    date_time_pairs: list[DateTimePair] = []
    time_slots: list[TimeSlot] = []
    images: list[str] = Field(min_length=1)
    error: str | None = None

    model_config = _CAMEL

    @computed_field(alias="firstImage")
    @property
    def first_image(self) -> str | None:
        return self.images[0] if self.images else None


class BrandingOptions(BaseModel):
    """Customization merged into the composed email. Immutable per request."""

    primary_color: str = "#7851a9"
    secondary_color: str = "#6a4c96"
    heading_text_color: str = "#ffffff"
    paragraph_text_color: str = "#333333"
    heading_font: str = "Playfair Display"
    paragraph_font: str = "Georgia"
    heading_font_size: int = Field(default=28, ge=1)
    paragraph_font_size: int = Field(default=16, ge=1)
    session_hero_images: dict[str, str] = {}

    model_config = {**_CAMEL, "frozen": True}
