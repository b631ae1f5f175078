"""
Vector Store
============

File-based index of prior-issue chunks with cosine similarity search.

The index is produced offline by the ingestion job (one document per issue
chunk) and loaded read-only at startup. Data lives in two files:
- documents.json: chunk content and metadata (source, url, issueKey, title)
- embeddings.npy: the embedding matrix, one row per document

Cosine Similarity:
    cos(A, B) = (A · B) / (||A|| * ||B||)
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from jirabot.utils.logger import Logger

logger = Logger("VectorStore")


@dataclass
class VectorDocument:
    """
    One indexed issue chunk.

    Attributes:
        id: Unique identifier (url + chunk number)
        content: The chunk text
        embedding: The vector embedding
        metadata: source, url, issueKey, title, chunk_number
        score: Similarity score (set during search)
    """
    id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)
    score: float | None = None

    @classmethod
    def from_dict(cls, data: dict, embedding: list[float]) -> "VectorDocument":
        return cls(
            id=data["id"],
            content=data["content"],
            embedding=embedding,
            metadata=data.get("metadata", {}),
        )


class VectorStore:
    """
    In-memory cosine search over an on-disk index.

    Example:
        store = VectorStore(Path("data/vectorstore"))
        results = store.search(query_vector, top_k=5, min_score=0.5)
    """

    def __init__(self, storage_path: Path):
        self.storage_path = storage_path
        self.documents_file = storage_path / "documents.json"
        self.embeddings_file = storage_path / "embeddings.npy"

        self._documents: list[VectorDocument] = []
        self._embeddings: np.ndarray | None = None

        self._load()

        logger.info(f"Vector store initialized with {len(self._documents)} documents")

    def _load(self) -> None:
        """Load the index from disk, if present."""
        if not self.documents_file.exists() or not self.embeddings_file.exists():
            logger.warning(f"No similarity index found at {self.storage_path}")
            return

        with open(self.documents_file) as f:
            docs_data = json.load(f)
        embeddings = np.load(self.embeddings_file)

        if len(docs_data) != len(embeddings):
            raise ValueError(
                f"Index is inconsistent: {len(docs_data)} documents, {len(embeddings)} embeddings"
            )

        self._documents = [
            VectorDocument.from_dict(doc, row.tolist())
            for doc, row in zip(docs_data, embeddings)
        ]
        self._embeddings = embeddings
        logger.debug(f"Loaded {len(self._documents)} documents from disk")

    def search(
        self,
        query_vector: list[float],
        top_k: int = 5,
        min_score: float | None = None,
        filter_metadata: dict[str, Any] | None = None
    ) -> list[VectorDocument]:
        """
        Search for the documents most similar to the query.

        Args:
            query_vector: The query embedding
            top_k: Maximum number of results
            min_score: Only return documents scoring strictly above this
            filter_metadata: Metadata values every result must match

        Returns:
            Scored copies of the matching documents, highest score first
        """
        if self._embeddings is None or not self._documents or top_k <= 0:
            return []

        query = np.array(query_vector, dtype=float)
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return []

        doc_norms = np.linalg.norm(self._embeddings, axis=1)
        doc_norms = np.where(doc_norms == 0, 1, doc_norms)

        similarities = np.dot(self._embeddings, query) / (doc_norms * query_norm)

        results: list[tuple[int, float]] = []
        for i, score in enumerate(similarities):
            score = float(score)
            if min_score is not None and score <= min_score:
                continue
            if filter_metadata:
                metadata = self._documents[i].metadata
                if not all(metadata.get(k) == v for k, v in filter_metadata.items() if v is not None):
                    continue
            results.append((i, score))

        results.sort(key=lambda x: x[1], reverse=True)

        output = []
        for i, score in results[:top_k]:
            doc = self._documents[i]
            output.append(VectorDocument(
                id=doc.id,
                content=doc.content,
                embedding=doc.embedding,
                metadata=doc.metadata,
                score=score
            ))
        return output

    def __len__(self) -> int:
        return len(self._documents)
