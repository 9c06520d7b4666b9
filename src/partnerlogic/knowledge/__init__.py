"""
Knowledge base.

Articles and collections carry an access level naming the lowest tier that
may read them. Partners read content at or below their own tier.
"""

from .models import AccessLevel, KnowledgeArticle, KnowledgeCollection

__all__ = ["AccessLevel", "KnowledgeArticle", "KnowledgeCollection"]
