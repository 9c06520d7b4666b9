"""
Knowledge base API router.

Admins manage articles and collections. Partners read the published
articles their tier can access.
"""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import require_admin, require_partner
from ..auth.models import CurrentUser
from ..db import get_async_session
from .models import (
    ArticleCreate,
    ArticleResponse,
    ArticleUpdate,
    CollectionCreate,
    CollectionResponse,
    CollectionSummary,
    CollectionUpdate,
    KnowledgeLibrary,
)
from .service import KnowledgeService

router = APIRouter(tags=["Knowledge Base"])


# Partner library


@router.get("/library", response_model=KnowledgeLibrary)
async def get_library(
    search: str | None = Query(None),
    category: str | None = Query(None),
    collection: str | None = Query(None, description="Collection id or 'uncategorized'"),
    sort_by: str = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> KnowledgeLibrary:
    return await KnowledgeService(session).partner_library(
        current_user.profile_id,
        search=search,
        category=category,
        collection=collection,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/library/{article_id}", response_model=ArticleResponse)
async def read_article(
    article_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> ArticleResponse:
    article = await KnowledgeService(session).get_partner_article(
        current_user.profile_id, article_id
    )
    return ArticleResponse.model_validate(article)


# Admin management


@router.get("/articles", response_model=list[ArticleResponse])
async def list_articles(
    search: str | None = Query(None),
    category: str | None = Query(None),
    access_level: str | None = Query(None),
    published: bool | None = Query(None),
    collection: str | None = Query(None),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> list[ArticleResponse]:
    articles = await KnowledgeService(session).list_articles(
        search=search,
        category=category,
        access_level=access_level,
        published=published,
        collection=collection,
    )
    return [ArticleResponse.model_validate(a) for a in articles]


@router.post("/articles", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(
    data: ArticleCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ArticleResponse:
    return ArticleResponse.model_validate(await KnowledgeService(session).create_article(data))


@router.get("/articles/{article_id}", response_model=ArticleResponse)
async def get_article(
    article_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ArticleResponse:
    return ArticleResponse.model_validate(await KnowledgeService(session).get_article(article_id))


@router.patch("/articles/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: UUID,
    data: ArticleUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ArticleResponse:
    article = await KnowledgeService(session).update_article(article_id, data)
    return ArticleResponse.model_validate(article)


@router.delete("/articles/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_article(
    article_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    await KnowledgeService(session).delete_article(article_id)


@router.get("/collections", response_model=list[CollectionSummary])
async def list_collections(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> list[CollectionSummary]:
    service = KnowledgeService(session)
    counts = await service.article_counts_by_collection()
    return [
        CollectionSummary.model_validate(c).model_copy(
            update={"article_count": counts.get(c.id, 0)}
        )
        for c in await service.list_collections()
    ]


@router.post(
    "/collections", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED
)
async def create_collection(
    data: CollectionCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> CollectionResponse:
    collection = await KnowledgeService(session).create_collection(data)
    return CollectionResponse.model_validate(collection)


@router.patch("/collections/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: UUID,
    data: CollectionUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> CollectionResponse:
    collection = await KnowledgeService(session).update_collection(collection_id, data)
    return CollectionResponse.model_validate(collection)


@router.delete("/collections/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(
    collection_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    await KnowledgeService(session).delete_collection(collection_id)
