"""
Similarity Retrieval
====================

Finds prior Jira issues similar to what the user is describing, so the
bot can point at existing tickets before creating a duplicate.

Two independent strategies, exposed to the model as separate capabilities
so it can pick one or run both in the same round:

- Semantic: embed the text, rank indexed issue chunks by cosine
  similarity, keep only scores above the relevance floor.
- Lexical: a JQL `textfields ~` query on the project, newest first.

Both return records bearing key, summary and url, so the model can
present either result set the same way.

Components:
- embeddings.py: query embeddings via OpenAI
- vectorstore.py: the on-disk issue-chunk index
"""

import re
from dataclasses import dataclass, field
from typing import Any

from jirabot.rag.embeddings import EmbeddingGenerator
from jirabot.rag.vectorstore import VectorStore, VectorDocument
from jirabot.tools.jira_client import JiraClient
from jirabot.utils.config import JiraConfig
from jirabot.utils.logger import Logger

logger = Logger("Retrieval")

DEFAULT_RELEVANCE_FLOOR = 0.5


@dataclass
class SimilarityRecord:
    """
    A prior-issue chunk matched by semantic search.

    Attributes:
        content: The chunk text
        metadata: Index metadata (url, issueKey, title, source)
        relevance_score: Cosine similarity, above the relevance floor
    """
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    relevance_score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "key": self.metadata.get("issueKey"),
            "summary": self.metadata.get("title") or _first_line(self.content),
            "url": self.metadata.get("url"),
            "content": self.content,
            "relevance_score": round(self.relevance_score, 4),
        }


def _first_line(text: str) -> str:
    return text.strip().splitlines()[0][:200] if text.strip() else ""


def _jql_quote(text: str) -> str:
    """Escape text for use inside a double-quoted JQL string."""
    cleaned = re.sub(r"\s+", " ", text).strip()
    return cleaned.replace("\\", "\\\\").replace('"', '\\"')


def issue_to_dict(issue: dict, jira_config: JiraConfig) -> dict:
    """Flatten a raw Jira issue into the record shape shown to the model."""
    fields = issue.get("fields") or {}
    rendered = issue.get("renderedFields") or {}
    return {
        "id": issue.get("id"),
        "key": issue.get("key"),
        "summary": fields.get("summary"),
        "description": rendered.get("description"),
        "resolution": rendered.get("resolution") or fields.get("resolution"),
        "url": jira_config.browse_url(issue.get("key", "")),
    }


class SimilarityRetriever:
    """
    Semantic and lexical search over prior issues.

    Example:
        retriever = SimilarityRetriever(embeddings, vectorstore, jira)

        records = await retriever.search_semantic("payment page timeout", limit=5)
        issues = await retriever.search_lexical("payment timeout", limit=5)
    """

    def __init__(
        self,
        embeddings: EmbeddingGenerator,
        vectorstore: VectorStore,
        jira: JiraClient,
        relevance_floor: float = DEFAULT_RELEVANCE_FLOOR
    ):
        self.embeddings = embeddings
        self.vectorstore = vectorstore
        self.jira = jira
        self.relevance_floor = relevance_floor

    async def search_semantic(self, text: str, limit: int = 5) -> list[SimilarityRecord]:
        """
        Rank indexed issue chunks by similarity to the text.

        Only records scoring strictly above the relevance floor are
        returned, highest first, at most `limit` of them.
        """
        logger.debug(f"Semantic search: '{text[:50]}'")

        query_embedding = await self.embeddings.generate(text)

        documents = self.vectorstore.search(
            query_vector=query_embedding,
            top_k=limit,
            min_score=self.relevance_floor,
            filter_metadata={"source": self.jira.config.issues_source}
        )

        records = [
            SimilarityRecord(
                content=doc.content,
                metadata=doc.metadata,
                relevance_score=doc.score or 0.0
            )
            for doc in documents
            if doc.score is not None and doc.score > self.relevance_floor
        ]

        logger.debug(f"Found {len(records)} semantic matches")
        return records[:limit]

    async def search_lexical(self, text: str, limit: int = 5) -> list[dict]:
        """
        Keyword search in the configured project, newest first.

        Returns at most `limit` issues.
        """
        if limit <= 0:
            return []

        project_key = self.jira.config.project_key
        jql = f'project = {project_key} AND textfields ~ "{_jql_quote(text)}" ORDER BY created DESC'
        logger.debug(f"Lexical search: {jql}")

        issues = await self.jira.search_issues(jql, limit=limit)
        return [issue_to_dict(issue, self.jira.config) for issue in issues[:limit]]


__all__ = [
    "SimilarityRecord",
    "SimilarityRetriever",
    "EmbeddingGenerator",
    "VectorStore",
    "VectorDocument",
    "issue_to_dict",
]
