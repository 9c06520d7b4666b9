"""
Tests for the knowledge base and tier-gated library access.
"""

import pytest
import pytest_asyncio

from partnerlogic.exceptions import ValidationError
from partnerlogic.knowledge.models import ArticleCreate, CollectionCreate
from partnerlogic.knowledge.service import KnowledgeService, accessible_levels, validate_article

from tests.helpers import as_user

pytestmark = pytest.mark.integration

LONG_CONTENT = "This guide walks through the partner onboarding checklist step by step."


def article(title: str, **overrides) -> ArticleCreate:
    values = {"title": title, "content": LONG_CONTENT}
    values.update(overrides)
    return ArticleCreate(**values)


class TestAccessLevels:
    def test_gold_reads_lower_tiers(self):
        assert accessible_levels("gold") == ["all", "bronze", "silver", "gold"]

    def test_unknown_tier_reads_as_bronze(self):
        assert accessible_levels(None) == ["all", "bronze"]

    @pytest.mark.parametrize(
        "title,content,message",
        [
            ("", LONG_CONTENT, "Title is required"),
            ("Short", LONG_CONTENT, "Title must be at least 10 characters long"),
            ("A long enough title", "Too short", "Content must be at least 50 characters long"),
        ],
    )
    def test_article_validation(self, title, content, message):
        with pytest.raises(ValidationError) as exc:
            validate_article(title, content)
        assert exc.value.message == message


@pytest.mark.asyncio
class TestPartnerLibrary:
    @pytest_asyncio.fixture
    async def library(self, db_session):
        service = KnowledgeService(db_session)
        collection = await service.create_collection(
            CollectionCreate(name="Sales Playbooks", access_level="all")
        )
        await service.create_collection(
            CollectionCreate(name="Platinum Briefings", access_level="platinum")
        )
        await service.create_article(
            article("Getting started guide", tags=["welcome"], collection_id=collection.id)
        )
        await service.create_article(
            article("Gold pricing handbook", category="sales", access_level="gold")
        )
        await service.create_article(
            article("Platinum roadmap briefing", access_level="platinum")
        )
        await service.create_article(article("Draft onboarding notes", published=False))
        return collection

    async def test_library_respects_tier(self, client, partner, library):
        response = await client.get("/api/v1/knowledge/library", headers=as_user("partner-1"))
        assert response.status_code == 200
        body = response.json()
        assert sorted(a["title"] for a in body["articles"]) == [
            "Getting started guide",
            "Gold pricing handbook",
        ]
        assert [c["name"] for c in body["collections"]] == ["Sales Playbooks"]
        assert body["collections"][0]["article_count"] == 1

        counts = {c["value"]: c["count"] for c in body["categories"]}
        assert counts["all"] == 2
        assert counts["sales"] == 1

    async def test_bronze_partner_sees_less(self, client, other_partner, library):
        response = await client.get("/api/v1/knowledge/library", headers=as_user("partner-2"))
        assert [a["title"] for a in response.json()["articles"]] == ["Getting started guide"]

    async def test_filters(self, client, partner, library):
        by_tag = await client.get(
            "/api/v1/knowledge/library", params={"search": "WELCOME"}, headers=as_user("partner-1")
        )
        assert by_tag.json()["total"] == 1

        uncategorized = await client.get(
            "/api/v1/knowledge/library",
            params={"collection": "uncategorized"},
            headers=as_user("partner-1"),
        )
        assert [a["title"] for a in uncategorized.json()["articles"]] == [
            "Gold pricing handbook"
        ]

    async def test_learning_disabled(self, client, db_session, partner, library):
        partner.organization.learning_enabled = False
        await db_session.commit()
        response = await client.get("/api/v1/knowledge/library", headers=as_user("partner-1"))
        assert response.status_code == 403

    async def test_hidden_article_is_not_found(self, client, db_session, partner, library):
        articles = await KnowledgeService(db_session).list_articles(search="platinum")
        response = await client.get(
            f"/api/v1/knowledge/library/{articles[0].id}", headers=as_user("partner-1")
        )
        assert response.status_code == 404


@pytest.mark.asyncio
class TestKnowledgeAdmin:
    async def test_article_crud(self, client, admin):
        created = await client.post(
            "/api/v1/knowledge/articles",
            json={"title": "Technical install guide", "content": LONG_CONTENT, "tags": ["a", "a"]},
            headers=as_user("admin-1"),
        )
        assert created.status_code == 201
        assert created.json()["tags"] == ["a"]
        article_id = created.json()["id"]

        updated = await client.patch(
            f"/api/v1/knowledge/articles/{article_id}",
            json={"category": "technical", "published": False},
            headers=as_user("admin-1"),
        )
        assert updated.json()["category"] == "technical"
        assert updated.json()["published"] is False

        drafts = await client.get(
            "/api/v1/knowledge/articles", params={"published": False}, headers=as_user("admin-1")
        )
        assert [a["id"] for a in drafts.json()] == [article_id]

        deleted = await client.delete(
            f"/api/v1/knowledge/articles/{article_id}", headers=as_user("admin-1")
        )
        assert deleted.status_code == 204

    async def test_deleting_collection_uncategorizes_articles(self, client, admin):
        collection = await client.post(
            "/api/v1/knowledge/collections",
            json={"name": "Manuals", "type": "user_manuals"},
            headers=as_user("admin-1"),
        )
        collection_id = collection.json()["id"]
        created = await client.post(
            "/api/v1/knowledge/articles",
            json={
                "title": "Administrator manual",
                "content": LONG_CONTENT,
                "collection_id": collection_id,
            },
            headers=as_user("admin-1"),
        )
        article_id = created.json()["id"]

        await client.delete(
            f"/api/v1/knowledge/collections/{collection_id}", headers=as_user("admin-1")
        )
        article_after = await client.get(
            f"/api/v1/knowledge/articles/{article_id}", headers=as_user("admin-1")
        )
        assert article_after.json()["collection_id"] is None

    async def test_partner_cannot_manage(self, client, partner):
        response = await client.post(
            "/api/v1/knowledge/articles",
            json={"title": "Technical install guide", "content": LONG_CONTENT},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 403
