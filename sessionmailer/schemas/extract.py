"""Schemas for the /v1/sessions endpoints."""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from sessionmailer.schemas.session import BrandingOptions, SessionData

_BRANDING_KEYS = (
    "primary_color",
    "secondary_color",
    "heading_text_color",
    "paragraph_text_color",
    "heading_font",
    "paragraph_font",
    "heading_font_size",
    "paragraph_font_size",
)


class BrandingFields(BaseModel):
    """Branding keys as they appear at the top level of a request.

    Unset keys fall back to ``BrandingOptions`` defaults. A nested
    ``customization`` object takes precedence over top-level keys.
    """

    primary_color: str | None = None
    secondary_color: str | None = None
    heading_text_color: str | None = None
    paragraph_text_color: str | None = None
    heading_font: str | None = None
    paragraph_font: str | None = None
    heading_font_size: int | None = Field(default=None, ge=1)
    paragraph_font_size: int | None = Field(default=None, ge=1)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class BrandedRequest(BrandingFields):
    customization: BrandingFields | None = None
    session_hero_images: dict[str, str] | None = None

    def branding(self) -> BrandingOptions:
        values: dict = {}
        for key in _BRANDING_KEYS:
            value = getattr(self.customization, key, None) if self.customization else None
            if value is None:
                value = getattr(self, key)
            if value is not None:
                values[key] = value
        if self.session_hero_images:
            values["session_hero_images"] = dict(self.session_hero_images)
        return BrandingOptions(**values)


class ExtractSessionsRequest(BrandedRequest):
    """Scrape one or more booking pages and compose an email from them."""

    url: str | None = None
    urls: list[str] | None = None

    def target_urls(self) -> list[str]:
        if self.urls:
            return list(self.urls)
        if self.url:
            return [self.url]
        return []


class ComposeSessionsRequest(BrandedRequest):
    """Re-compose an email from sessions that were already extracted."""

    sessions: list[SessionData]


class ExtractSessionsResponse(BaseModel):
    success: bool
    sessions: list[SessionData] = []
    email_html: str = ""
    raw_html: str = ""
    is_multiple: bool = False
    error: str | None = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
