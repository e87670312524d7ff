"""Query embedding generation for semantic search."""

import logging

import tiktoken
from azure.identity.aio import DefaultAzureCredential
from openai import AsyncAzureOpenAI, AsyncOpenAI

logger = logging.getLogger(__name__)


class QueryEmbedder:
    """Generates a single embedding vector for a search query.

    Uses Azure OpenAI when an Azure endpoint is configured (API key or
    DefaultAzureCredential), otherwise the public OpenAI API.
    """

    def __init__(
        self,
        api_key: str | None = None,
        azure_endpoint: str | None = None,
        model: str = "text-embedding-3-small",
        dimensions: int = 384,
        api_version: str = "2024-02-01",
        max_tokens: int = 512,
    ):
        """Initialize the query embedder.

        Args:
            api_key: OpenAI or Azure OpenAI API key
            azure_endpoint: Azure OpenAI endpoint (None for api.openai.com)
            model: Embedding model or Azure deployment name
            dimensions: Vector size; must match the content embedding index
            api_version: Azure OpenAI API version
            max_tokens: Queries longer than this are truncated
        """
        self.azure_endpoint = azure_endpoint
        self.model = model
        self.dimensions = dimensions
        self.api_version = api_version
        self.max_tokens = max_tokens

        self.client: AsyncOpenAI | AsyncAzureOpenAI | None = None
        self._api_key = api_key
        self._credential: DefaultAzureCredential | None = None

        self.encoding = tiktoken.get_encoding("cl100k_base")

        self.total_tokens_processed = 0
        self.total_api_calls = 0

    async def __aenter__(self):
        await self._initialize_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _initialize_client(self):
        """Initialize the OpenAI client."""
        if self.client is not None:
            return

        if self.azure_endpoint is None:
            self.client = AsyncOpenAI(api_key=self._api_key)
        elif self._api_key:
            self.client = AsyncAzureOpenAI(
                azure_endpoint=self.azure_endpoint,
                api_key=self._api_key,
                api_version=self.api_version,
            )
        else:
            self._credential = DefaultAzureCredential()
            self.client = AsyncAzureOpenAI(
                azure_endpoint=self.azure_endpoint,
                azure_ad_token_provider=self._get_token_provider(),
                api_version=self.api_version,
            )

    def _get_token_provider(self):
        """Get token provider function for Azure AD authentication."""
        async def get_token():
            if self._credential is None:
                raise RuntimeError("Credential not initialized")
            token = await self._credential.get_token("https://cognitiveservices.azure.com/.default")
            return token.token
        return get_token

    async def close(self):
        """Close the client and cleanup resources."""
        if self.client:
            await self.client.close()
            self.client = None
        if self._credential:
            await self._credential.close()
            self._credential = None

    async def embed(self, text: str) -> list[float]:
        """Embed a query string.

        Args:
            text: Query text

        Returns:
            Embedding vector

        Raises:
            ValueError: If the text is blank
        """
        if not text.strip():
            raise ValueError("Cannot embed an empty query")

        if self.client is None:
            await self._initialize_client()

        tokens = self.encoding.encode(text)
        if len(tokens) > self.max_tokens:
            logger.warning(f"Query has {len(tokens)} tokens, truncating to {self.max_tokens}")
            tokens = tokens[: self.max_tokens]
            text = self.encoding.decode(tokens)

        response = await self.client.embeddings.create(
            model=self.model,
            input=[text],
            dimensions=self.dimensions,
        )

        self.total_tokens_processed += len(tokens)
        self.total_api_calls += 1

        return response.data[0].embedding
