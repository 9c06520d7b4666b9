"""
Knowledge base management and tier-gated partner access.
"""

from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, PartnerNotFoundError, PermissionDeniedError, ValidationError
from ..partners.models import Partner
from ..tiers.calculator import accessible_tiers
from .models import (
    ARTICLE_SORT_FIELDS,
    CATEGORY_LABELS,
    UNCATEGORIZED,
    AccessLevel,
    ArticleCreate,
    ArticleResponse,
    ArticleUpdate,
    CategoryCount,
    CollectionCreate,
    CollectionSummary,
    CollectionUpdate,
    KnowledgeArticle,
    KnowledgeCollection,
    KnowledgeLibrary,
)

logger = structlog.get_logger(__name__)

MIN_TITLE_LENGTH = 10
MIN_CONTENT_LENGTH = 50


def accessible_levels(tier: str | None) -> list[str]:
    """Access levels a partner of ``tier`` can read. Unknown tiers read as bronze."""
    tiers = accessible_tiers(tier) or accessible_tiers("bronze")
    return [AccessLevel.ALL.value, *tiers]


def validate_article(title: str | None, content: str | None) -> None:
    if not title:
        raise ValidationError("Title is required", field="title")
    if not content:
        raise ValidationError("Content is required", field="content")
    if len(title) < MIN_TITLE_LENGTH:
        raise ValidationError("Title must be at least 10 characters long", field="title")
    if len(content) < MIN_CONTENT_LENGTH:
        raise ValidationError("Content must be at least 50 characters long", field="content")


def _matches(article: KnowledgeArticle, term: str) -> bool:
    return (
        term in article.title.lower()
        or term in article.content.lower()
        or any(term in tag.lower() for tag in article.tags or [])
    )


def filter_articles(
    articles: list[KnowledgeArticle],
    search: str | None = None,
    category: str | None = None,
    collection: str | None = None,
) -> list[KnowledgeArticle]:
    """Apply the library filters. ``collection`` may be a collection id or ``uncategorized``."""
    if search:
        term = search.lower()
        articles = [a for a in articles if _matches(a, term)]
    if category and category != "all":
        articles = [a for a in articles if a.category == category]
    if collection and collection != "all":
        if collection == UNCATEGORIZED:
            articles = [a for a in articles if a.collection_id is None]
        else:
            articles = [a for a in articles if str(a.collection_id) == collection]
    return articles


def category_counts(articles: list[KnowledgeArticle]) -> list[CategoryCount]:
    counts = [CategoryCount(value="all", label="All Categories", count=len(articles))]
    for value, label in CATEGORY_LABELS.items():
        counts.append(
            CategoryCount(
                value=value,
                label=label,
                count=sum(1 for a in articles if a.category == value),
            )
        )
    return counts


class KnowledgeService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # Articles

    async def _validate_collection(self, collection_id: UUID | None) -> None:
        if collection_id is not None:
            await self.get_collection(collection_id)

    async def create_article(self, data: ArticleCreate) -> KnowledgeArticle:
        validate_article(data.title, data.content)
        await self._validate_collection(data.collection_id)
        article = KnowledgeArticle(
            title=data.title,
            content=data.content,
            category=data.category.value,
            access_level=data.access_level.value,
            tags=list(dict.fromkeys(t for t in data.tags if t)),
            published=data.published,
            collection_id=data.collection_id,
            attachments=data.attachments or [],
        )
        self.session.add(article)
        await self.session.commit()
        await self.session.refresh(article)
        logger.info(
            "knowledge.article.created",
            article_id=str(article.id),
            access_level=article.access_level,
            published=article.published,
        )
        return article

    async def get_article(self, article_id: UUID) -> KnowledgeArticle:
        article = await self.session.get(KnowledgeArticle, article_id)
        if article is None:
            raise NotFoundError("Article", article_id)
        return article

    async def update_article(self, article_id: UUID, data: ArticleUpdate) -> KnowledgeArticle:
        article = await self.get_article(article_id)
        changes = data.model_dump(exclude_unset=True, mode="json")
        validate_article(
            changes.get("title", article.title), changes.get("content", article.content)
        )
        if "collection_id" in changes:
            await self._validate_collection(data.collection_id)
            changes["collection_id"] = data.collection_id
        for key, value in changes.items():
            setattr(article, key, value)
        await self.session.commit()
        await self.session.refresh(article)
        logger.info("knowledge.article.updated", article_id=str(article_id), fields=sorted(changes))
        return article

    async def delete_article(self, article_id: UUID) -> None:
        article = await self.get_article(article_id)
        await self.session.delete(article)
        await self.session.commit()
        logger.info("knowledge.article.deleted", article_id=str(article_id))

    async def list_articles(
        self,
        search: str | None = None,
        category: str | None = None,
        access_level: str | None = None,
        published: bool | None = None,
        collection: str | None = None,
    ) -> list[KnowledgeArticle]:
        """Admin listing over every article."""
        query = select(KnowledgeArticle)
        if access_level and access_level != "all_levels":
            query = query.where(KnowledgeArticle.access_level == access_level)
        if published is not None:
            query = query.where(KnowledgeArticle.published.is_(published))
        result = await self.session.execute(query.order_by(KnowledgeArticle.created_at.desc()))
        return filter_articles(list(result.scalars().all()), search, category, collection)

    # Collections

    async def create_collection(self, data: CollectionCreate) -> KnowledgeCollection:
        if not data.name:
            raise ValidationError("Collection name is required", field="name")
        collection = KnowledgeCollection(
            name=data.name,
            description=data.description or None,
            type=data.type.value,
            access_level=data.access_level.value,
        )
        self.session.add(collection)
        await self.session.commit()
        await self.session.refresh(collection)
        logger.info("knowledge.collection.created", collection_id=str(collection.id))
        return collection

    async def get_collection(self, collection_id: UUID) -> KnowledgeCollection:
        collection = await self.session.get(KnowledgeCollection, collection_id)
        if collection is None:
            raise NotFoundError("Collection", collection_id)
        return collection

    async def update_collection(
        self, collection_id: UUID, data: CollectionUpdate
    ) -> KnowledgeCollection:
        collection = await self.get_collection(collection_id)
        changes = data.model_dump(exclude_unset=True, mode="json")
        if "name" in changes and not changes["name"]:
            raise ValidationError("Collection name is required", field="name")
        for key, value in changes.items():
            setattr(collection, key, value)
        await self.session.commit()
        await self.session.refresh(collection)
        return collection

    async def delete_collection(self, collection_id: UUID) -> None:
        """Delete a collection. Its articles become uncategorized."""
        collection = await self.get_collection(collection_id)
        await self.session.execute(
            update(KnowledgeArticle)
            .where(KnowledgeArticle.collection_id == collection_id)
            .values(collection_id=None)
        )
        await self.session.delete(collection)
        await self.session.commit()
        logger.info("knowledge.collection.deleted", collection_id=str(collection_id))

    async def list_collections(
        self, access_levels: list[str] | None = None
    ) -> list[KnowledgeCollection]:
        query = select(KnowledgeCollection)
        if access_levels is not None:
            query = query.where(KnowledgeCollection.access_level.in_(access_levels))
        result = await self.session.execute(query.order_by(KnowledgeCollection.name))
        return list(result.scalars().all())

    async def article_counts_by_collection(self) -> dict[UUID, int]:
        result = await self.session.execute(
            select(KnowledgeArticle.collection_id, func.count())
            .where(KnowledgeArticle.collection_id.is_not(None))
            .group_by(KnowledgeArticle.collection_id)
        )
        return {collection_id: count for collection_id, count in result.all()}

    # Partner access

    async def _partner_levels(self, partner_id: UUID) -> list[str]:
        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        if not partner.organization.learning_enabled:
            raise PermissionDeniedError("Learning resources are not enabled for your organization")
        return accessible_levels(partner.organization.tier)

    async def _accessible_articles(self, levels: list[str]) -> list[KnowledgeArticle]:
        result = await self.session.execute(
            select(KnowledgeArticle)
            .where(
                KnowledgeArticle.published.is_(True),
                or_(*(KnowledgeArticle.access_level == level for level in levels)),
            )
            .order_by(KnowledgeArticle.created_at.desc())
        )
        return list(result.scalars().all())

    async def partner_library(
        self,
        partner_id: UUID,
        search: str | None = None,
        category: str | None = None,
        collection: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> KnowledgeLibrary:
        """Published articles and collections the partner's tier can read.

        Category counts cover every readable article, ignoring the filters.
        """
        if sort_by not in ARTICLE_SORT_FIELDS:
            raise ValidationError(
                f"Cannot sort by '{sort_by}'. Use one of: {', '.join(ARTICLE_SORT_FIELDS)}",
                field="sort_by",
            )
        levels = await self._partner_levels(partner_id)
        readable = await self._accessible_articles(levels)
        articles = filter_articles(readable, search, category, collection)
        articles.sort(key=lambda a: getattr(a, sort_by), reverse=sort_order != "asc")

        collections = await self.list_collections(levels)
        per_collection: dict[UUID, int] = {}
        for article in readable:
            if article.collection_id is not None:
                per_collection[article.collection_id] = (
                    per_collection.get(article.collection_id, 0) + 1
                )

        return KnowledgeLibrary(
            articles=[ArticleResponse.model_validate(a) for a in articles],
            total=len(articles),
            categories=category_counts(readable),
            collections=[
                CollectionSummary.model_validate(c).model_copy(
                    update={"article_count": per_collection.get(c.id, 0)}
                )
                for c in collections
            ],
        )

    async def get_partner_article(self, partner_id: UUID, article_id: UUID) -> KnowledgeArticle:
        levels = await self._partner_levels(partner_id)
        article = await self.get_article(article_id)
        if not article.published or article.access_level not in levels:
            raise NotFoundError("Article", article_id)
        return article
