"""Pydantic schemas shared across the API."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .titles import clean_title


class Language(str, Enum):
    ES = "es"
    EN = "en"


SUPPORTED_LANGUAGES = (Language.ES.value, Language.EN.value)


class ArticleType(str, Enum):
    ARTICLE = "article"
    RESEARCH = "research"
    GUIDE = "guide"


ARTICLE_TYPES = tuple(value.value for value in ArticleType)


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ActivityContent(_Row):
    kind: Literal["activity"] = "activity"
    id: str
    emoji: Optional[str] = None
    title: str
    subtitle: Optional[str] = None
    schema_target: Optional[str] = None
    domain: Optional[str] = None
    materials: Optional[List[str]] = None
    duration_minutes: Optional[int] = None
    steps: Optional[str] = None
    science_note: Optional[str] = None
    age_min_months: int = 0
    age_max_months: int = 0
    language: Language = Language.ES
    is_featured: bool = False
    created_at: Optional[str] = None


class ArticleContent(_Row):
    kind: Literal["article"] = "article"
    id: str
    emoji: Optional[str] = None
    title: str
    type: ArticleType = ArticleType.ARTICLE
    domain: Optional[str] = None
    summary: Optional[str] = None
    body: Optional[str] = None
    read_time_minutes: Optional[int] = None
    age_min_months: int = 0
    age_max_months: int = 0
    language: Language = Language.ES
    created_at: Optional[str] = None


class BrainCardContent(_Row):
    """Legacy explore card, kept as a fallback when no article matches."""

    kind: Literal["brain_card"] = "brain_card"
    id: str
    type: Optional[str] = None
    age_range_start: int = 0
    age_range_end: int = 0
    language: Language = Language.ES
    icon: Optional[str] = None
    title: str
    domain: Optional[str] = None
    preview: Optional[str] = None
    article: Dict[str, Any] = Field(default_factory=dict)
    source: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


Content = Union[ActivityContent, ArticleContent, BrainCardContent]


class ContentCard(BaseModel):
    """Common response projection shared by every content kind."""

    kind: str
    id: str
    title: str
    emoji: Optional[str] = None
    domain: Optional[str] = None
    summary: Optional[str] = None
    language: str
    age_min_months: int
    age_max_months: int
    type: Optional[str] = None
    read_time_minutes: Optional[int] = None
    duration_minutes: Optional[int] = None
    schema_target: Optional[str] = None
    source: Optional[str] = None


def activity_card(item: ActivityContent) -> ContentCard:
    return ContentCard(
        kind=item.kind,
        id=item.id,
        title=clean_title(item.title),
        emoji=item.emoji,
        domain=item.domain,
        summary=item.subtitle,
        language=item.language.value,
        age_min_months=item.age_min_months,
        age_max_months=item.age_max_months,
        type="activity",
        duration_minutes=item.duration_minutes,
        schema_target=item.schema_target,
    )


def article_card(item: ArticleContent) -> ContentCard:
    return ContentCard(
        kind=item.kind,
        id=item.id,
        title=clean_title(item.title),
        emoji=item.emoji,
        domain=item.domain,
        summary=item.summary,
        language=item.language.value,
        age_min_months=item.age_min_months,
        age_max_months=item.age_max_months,
        type=item.type.value,
        read_time_minutes=item.read_time_minutes,
    )


def brain_card_card(item: BrainCardContent) -> ContentCard:
    read_time = item.article.get("read_time_minutes") if item.article else None
    return ContentCard(
        kind=item.kind,
        id=item.id,
        title=item.title,
        emoji=item.icon,
        domain=item.domain,
        summary=item.preview,
        language=item.language.value,
        age_min_months=item.age_range_start,
        age_max_months=item.age_range_end,
        type=item.type,
        read_time_minutes=read_time if isinstance(read_time, int) else None,
        source=item.source,
    )


def to_card(item: Content) -> ContentCard:
    if isinstance(item, ActivityContent):
        return activity_card(item)
    if isinstance(item, ArticleContent):
        return article_card(item)
    if isinstance(item, BrainCardContent):
        return brain_card_card(item)
    raise TypeError(f"Unsupported content kind: {type(item).__name__}")


class ActivityShortage(BaseModel):
    required: int
    available_uncompleted: int
    returned: int
    shortage: int


class SectionShortage(BaseModel):
    required: int
    available_unread: int
    returned: int
    shortage: int


class CompletePayload(BaseModel):
    rating: Optional[int] = None
    note: Optional[str] = None


class ReadPatchPayload(BaseModel):
    read_time_seconds: Optional[int] = None
    read_completed: bool = False


class DailyContentPayload(BaseModel):
    child_id: Optional[str] = Field(default=None, alias="childId")

    model_config = ConfigDict(populate_by_name=True)


class InviteCreatePayload(BaseModel):
    child_id: Optional[str] = Field(default=None, alias="childId")

    model_config = ConfigDict(populate_by_name=True)
