"""
Knowledge base articles and collections.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ArticleCategory(str, Enum):
    ONBOARDING = "onboarding"
    SALES = "sales"
    TECHNICAL = "technical"
    MARKETING = "marketing"
    TRAINING = "training"
    CASE_STUDIES = "case_studies"


CATEGORY_LABELS: dict[str, str] = {
    "onboarding": "Getting Started",
    "sales": "Sales Resources",
    "technical": "Technical Docs",
    "marketing": "Marketing Materials",
    "training": "Training Videos",
    "case_studies": "Case Studies",
}


class AccessLevel(str, Enum):
    """Lowest tier that may read the content. ``all`` is open to every partner."""

    ALL = "all"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class CollectionType(str, Enum):
    PRODUCT_COLLATERAL = "product_collateral"
    PRODUCT_VIDEOS = "product_videos"
    CASE_STUDIES = "case_studies"
    USER_MANUALS = "user_manuals"
    MARKETING_MATERIALS = "marketing_materials"
    SALES_ENABLEMENT = "sales_enablement"
    TRAINING_RESOURCES = "training_resources"
    DOCUMENTATION = "documentation"


# Collection filter value selecting articles outside any collection
UNCATEGORIZED = "uncategorized"

ARTICLE_SORT_FIELDS = ("created_at", "updated_at", "title")


class KnowledgeCollection(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "knowledge_collections"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(50), default=CollectionType.PRODUCT_COLLATERAL.value)
    access_level: Mapped[str] = mapped_column(String(20), default=AccessLevel.ALL.value)


class KnowledgeArticle(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "knowledge_articles"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), default=ArticleCategory.ONBOARDING.value)
    access_level: Mapped[str] = mapped_column(
        String(20), default=AccessLevel.ALL.value, index=True
    )
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    collection_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("knowledge_collections.id", ondelete="SET NULL"), nullable=True
    )
    # Opaque file storage references
    attachments: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)


class ArticleCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = ""
    content: str = ""
    category: ArticleCategory = ArticleCategory.ONBOARDING
    access_level: AccessLevel = AccessLevel.ALL
    tags: list[str] = Field(default_factory=list)
    published: bool = True
    collection_id: UUID | None = None
    attachments: list[dict[str, Any]] | None = None


class ArticleUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = None
    content: str | None = None
    category: ArticleCategory | None = None
    access_level: AccessLevel | None = None
    tags: list[str] | None = None
    published: bool | None = None
    collection_id: UUID | None = None
    attachments: list[dict[str, Any]] | None = None


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    content: str
    category: str
    access_level: str
    tags: list[str]
    published: bool
    collection_id: UUID | None
    attachments: list[dict[str, Any]] | None
    created_at: datetime
    updated_at: datetime


class CollectionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = ""
    description: str | None = None
    type: CollectionType = CollectionType.PRODUCT_COLLATERAL
    access_level: AccessLevel = AccessLevel.ALL


class CollectionUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = None
    description: str | None = None
    type: CollectionType | None = None
    access_level: AccessLevel | None = None


class CollectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    type: str
    access_level: str
    created_at: datetime


class CategoryCount(BaseModel):
    value: str
    label: str
    count: int


class CollectionSummary(CollectionResponse):
    article_count: int = 0


class KnowledgeLibrary(BaseModel):
    """What a partner sees on the knowledge base page."""

    articles: list[ArticleResponse]
    total: int
    categories: list[CategoryCount]
    collections: list[CollectionSummary]
