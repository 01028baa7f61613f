"""
Database schemas and request models for the KI-Stammtisch site

Member, Event and SiteSettings correspond to MongoDB collections with the
collection name equal to the lowercase class name ("member", "event",
"settings" for SiteSettings). BlogPost lives in markdown files, see blog.py.

Documents are stored with snake_case keys; the JSON API uses the camelCase
aliases.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from database import parse_object_id

BlogCategory = Literal["ki-news", "use-cases", "event-recaps", "tutorials", "gastbeitraege"]

BLOG_CATEGORIES: Dict[str, str] = {
    "ki-news": "KI News",
    "use-cases": "Use Cases",
    "event-recaps": "Event Recaps",
    "tutorials": "Tutorials",
    "gastbeitraege": "Gastbeiträge",
}
DEFAULT_CATEGORY = "ki-news"

DEFAULT_HERO_TITLE = "KI-Stammtisch Köln"
DEFAULT_HERO_SUBTITLE = (
    "Der Treffpunkt für Selbstständige, Unternehmer und Firmen, "
    "die KI in ihr Geschäft integrieren möchten."
)

MISSING_FIELDS = "Bitte füllen Sie alle Pflichtfelder aus."


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _naive_utc(value: datetime) -> datetime:
    # MongoDB hands back naive UTC datetimes, keep everything comparable
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# Stored entities

class Member(CamelModel):
    id: Optional[str] = None
    email: EmailStr = Field(..., description="Business email, stored lowercased")
    company: str
    name: str
    industry: Optional[str] = None
    is_verified: bool = Field(False, alias="isVerified")
    verification_token: Optional[str] = Field(None, alias="verificationToken", exclude=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")


class Event(CamelModel):
    id: Optional[str] = None
    title: str
    description: str
    date: datetime
    time: str = Field(..., description="Start time as HH:MM")
    location: str
    address: str
    max_attendees: Optional[int] = Field(None, alias="maxAttendees")
    registered_count: int = Field(0, alias="registeredCount")
    is_active: bool = Field(True, alias="isActive")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")


class SiteSettings(CamelModel):
    """
    Site-wide settings (collection name: settings). Exactly one document.
    """
    show_countdown: bool = Field(True, alias="showCountdown")
    show_event_archive: bool = Field(True, alias="showEventArchive")
    next_event_id: Optional[str] = Field(None, alias="nextEventId")
    hero_title: str = Field(DEFAULT_HERO_TITLE, alias="heroTitle")
    hero_subtitle: str = Field(DEFAULT_HERO_SUBTITLE, alias="heroSubtitle")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class BlogPost(CamelModel):
    slug: str
    title: str
    excerpt: str = ""
    content: str
    author: str = "Admin"
    category: BlogCategory = DEFAULT_CATEGORY
    cover_image: Optional[str] = Field(None, alias="coverImage")
    published_at: datetime = Field(default_factory=datetime.utcnow, alias="publishedAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    is_published: bool = Field(True, alias="isPublished")
    tags: List[str] = []

    @property
    def category_label(self) -> str:
        return BLOG_CATEGORIES.get(self.category, self.category)


# Request models

class RegisterRequest(CamelModel):
    email: Optional[EmailStr] = None
    company: Optional[str] = None
    name: Optional[str] = None
    industry: Optional[str] = None
    accept_privacy: bool = Field(False, alias="acceptPrivacy")

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, v):
        if _blank(v):
            return None
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_required(self):
        if _blank(self.email) or _blank(self.company) or _blank(self.name):
            raise PydanticCustomError("missing_fields", MISSING_FIELDS)
        if not self.accept_privacy:
            raise PydanticCustomError("privacy", "Bitte akzeptieren Sie die Datenschutzerklärung.")
        self.company = self.company.strip()
        self.name = self.name.strip()
        if self.industry is not None:
            self.industry = self.industry.strip() or None
        return self


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


_EVENT_REQUIRED = ("title", "description", "date", "time", "location", "address")


class _EventFields(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    time: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    max_attendees: Optional[int] = Field(None, alias="maxAttendees", ge=1)

    @field_validator("date", mode="before")
    @classmethod
    def blank_date(cls, v):
        return None if _blank(v) else v

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return _naive_utc(v) if v is not None else v

    @field_validator("time")
    @classmethod
    def check_time(cls, v):
        if v is None or not v.strip():
            return v
        parts = v.strip().split(":")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise PydanticCustomError("time_format", "Bitte geben Sie die Uhrzeit als HH:MM an.")
        hours, minutes = int(parts[0]), int(parts[1])
        if hours > 23 or minutes > 59:
            raise PydanticCustomError("time_format", "Bitte geben Sie die Uhrzeit als HH:MM an.")
        return f"{hours:02d}:{minutes:02d}"

    @field_validator("max_attendees", mode="before")
    @classmethod
    def empty_max_attendees(cls, v):
        # forms send "" or 0 for "no limit"
        if v in ("", 0, "0"):
            return None
        return v


class EventCreate(_EventFields):
    @model_validator(mode="after")
    def check_required(self):
        if any(_blank(getattr(self, f)) for f in _EVENT_REQUIRED):
            raise PydanticCustomError("missing_fields", MISSING_FIELDS)
        return self


class EventUpdate(_EventFields):
    registered_count: Optional[int] = Field(None, alias="registeredCount", ge=0)
    is_active: Optional[bool] = Field(None, alias="isActive")

    @model_validator(mode="after")
    def check_not_blank(self):
        for f in _EVENT_REQUIRED:
            if f in self.model_fields_set and _blank(getattr(self, f)):
                raise PydanticCustomError("missing_fields", MISSING_FIELDS)
        return self


def _check_category(v):
    if v is None:
        return v
    if v not in BLOG_CATEGORIES:
        raise PydanticCustomError("category", "Unbekannte Kategorie.")
    return v


_POST_DEFAULTS = {"excerpt": "", "author": "Admin", "category": DEFAULT_CATEGORY, "tags": []}


class PostCreate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    slug: Optional[str] = None
    excerpt: str = ""
    author: str = "Admin"
    category: Annotated[str, AfterValidator(_check_category)] = DEFAULT_CATEGORY
    cover_image: Optional[str] = Field(None, alias="coverImage")
    tags: List[str] = []
    is_published: bool = Field(True, alias="isPublished")

    @field_validator("excerpt", "author", "category", "tags", mode="before")
    @classmethod
    def none_to_default(cls, v, info):
        if _blank(v):
            return _POST_DEFAULTS[info.field_name]
        return v

    @model_validator(mode="after")
    def check_required(self):
        if _blank(self.title) or _blank(self.content):
            raise PydanticCustomError("missing_fields", "Titel und Inhalt sind erforderlich.")
        return self


class PostUpdate(CamelModel):
    title: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    category: Annotated[Optional[str], AfterValidator(_check_category)] = None
    cover_image: Optional[str] = Field(None, alias="coverImage")
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = Field(None, alias="isPublished")
    published_at: Optional[datetime] = Field(None, alias="publishedAt")

    @model_validator(mode="after")
    def check_not_blank(self):
        for f in ("title", "content"):
            if f in self.model_fields_set and _blank(getattr(self, f)):
                raise PydanticCustomError("missing_fields", "Titel und Inhalt sind erforderlich.")
        return self


class SettingsUpdate(CamelModel):
    show_countdown: Optional[bool] = Field(None, alias="showCountdown")
    show_event_archive: Optional[bool] = Field(None, alias="showEventArchive")
    next_event_id: Optional[str] = Field(None, alias="nextEventId")
    hero_title: Optional[str] = Field(None, alias="heroTitle")
    hero_subtitle: Optional[str] = Field(None, alias="heroSubtitle")

    @field_validator("next_event_id")
    @classmethod
    def check_event_id(cls, v):
        if v is None or v == "":
            return None
        if parse_object_id(v) is None:
            raise PydanticCustomError("object_id", "Ungültige Event-ID.")
        return v


class ApiResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None
