from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

SOCIAL_PLATFORMS = ("facebook", "twitter", "instagram", "linkedin", "youtube")


class _Record(BaseModel):
    """Immutable record serialised with camelCase keys for downstream consumers."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class PageMetadata(_Record):
    lang: str = ""
    charset: str = ""
    viewport: str = ""
    robots: str = ""
    author: str = ""
    keywords: list[str] = []


class SocialLinks(_Record):
    facebook: str | None = None
    twitter: str | None = None
    instagram: str | None = None
    linkedin: str | None = None
    youtube: str | None = None

    def active(self) -> dict[str, str]:
        """Return ``platform → url`` for every platform with a link."""
        return {name: url for name in SOCIAL_PLATFORMS if (url := getattr(self, name))}


class ContactInfo(_Record):
    emails: list[str] = []
    phones: list[str] = []
    addresses: list[str] = []


class BusinessInfo(_Record):
    opening_hours: str = ""
    services: list[str] = []
    products: list[str] = []
    about_text: str = ""


class TechnicalInfo(_Record):
    load_time_ms: int = 0
    status_code: int = 0
    redirects: int = 0
    has_ssl: bool = False
    responsive: bool = False


class ScrapedContent(_Record):
    """Normalised content of a single rendered web page.

    A record is either populated or errored, never both: when ``error`` is
    set every content field holds its empty value. The only field an errored
    record may carry is ``technical_info.load_time_ms`` (time spent on the
    failed attempts).
    """

    url: str
    title: str = ""
    description: str = ""
    headings: list[str] = []
    content: str = ""
    images: list[str] = []
    links: list[str] = []
    metadata: PageMetadata = PageMetadata()
    social_media: SocialLinks = SocialLinks()
    contact_info: ContactInfo = ContactInfo()
    business_info: BusinessInfo = BusinessInfo()
    technical_info: TechnicalInfo = TechnicalInfo()
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def _errored_record_is_empty(self) -> ScrapedContent:
        if self.error is None:
            return self
        if not self.error:
            raise ValueError("error must be a non-empty string when set")
        populated = (
            self.title
            or self.description
            or self.headings
            or self.content
            or self.images
            or self.links
            or self.metadata != PageMetadata()
            or self.social_media != SocialLinks()
            or self.contact_info != ContactInfo()
            or self.business_info != BusinessInfo()
            or self.technical_info.model_copy(update={"load_time_ms": 0}) != TechnicalInfo()
        )
        if populated:
            raise ValueError("an errored ScrapedContent must not carry extracted content")
        return self

    @classmethod
    def failed(cls, url: str, error: str, *, load_time_ms: int = 0) -> ScrapedContent:
        """Build the terminal errored record for ``url``."""
        return cls(
            url=url,
            error=error,
            technical_info=TechnicalInfo(load_time_ms=load_time_ms),
        )

    @property
    def ok(self) -> bool:
        return self.error is None
