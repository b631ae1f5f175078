"""
Query Embeddings
================

Embeds retrieval queries with OpenAI's embedding models.

The model must match the one used to build the prior-issue index,
otherwise cosine scores are meaningless. Both default to
text-embedding-3-small (1536 dimensions).

Embeddings are cached in memory by text hash: the same issue description
is often searched again on the next turn of a thread. The cache keeps the
most recently used `cache_size` entries.
"""

import hashlib
from collections import OrderedDict

from openai import AsyncOpenAI

from jirabot.utils.logger import Logger

logger = Logger("Embeddings")


class EmbeddingGenerator:
    """
    Generates query embeddings using OpenAI's API.

    Example:
        generator = EmbeddingGenerator(api_key="sk-...", model="text-embedding-3-small")
        vector = await generator.generate("Checkout page times out on submit")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        client: AsyncOpenAI | None = None,
        cache_size: int = 1000
    ):
        """
        Initialize the embedding generator.

        Args:
            api_key: OpenAI API key (ignored when client is given)
            model: Embedding model to use
            client: Optional pre-built AsyncOpenAI client
            cache_size: Maximum number of cached embeddings
        """
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.cache_size = cache_size
        self._cache: OrderedDict[str, list[float]] = OrderedDict()

        logger.info(f"Embedding generator initialized with model: {model}")

    def _hash_text(self, text: str) -> str:
        return hashlib.md5(text.encode()).hexdigest()

    async def generate(self, text: str) -> list[float]:
        """
        Generate an embedding for a single text.

        Raises:
            openai.APIError: If the embedding request fails
        """
        cache_key = self._hash_text(text)
        if cache_key in self._cache:
            logger.debug("Embedding cache hit")
            self._cache.move_to_end(cache_key)
            return self._cache[cache_key]

        response = await self.client.embeddings.create(
            model=self.model,
            input=text
        )

        embedding = response.data[0].embedding
        self._cache[cache_key] = embedding
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

        logger.debug(f"Generated embedding (dim={len(embedding)})")
        return embedding
