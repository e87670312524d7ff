"""Unit tests for query embedding."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from src.search.embeddings import QueryEmbedder


@pytest.fixture
def mock_openai_client():
    """Create mock OpenAI client."""
    mock_client = AsyncMock()

    mock_response = Mock()
    mock_response.data = [Mock(embedding=[0.1] * 384)]
    mock_client.embeddings.create = AsyncMock(return_value=mock_response)
    mock_client.close = AsyncMock()

    return mock_client


class TestQueryEmbedder:
    """Test suite for QueryEmbedder."""

    def test_init_defaults(self):
        embedder = QueryEmbedder(api_key="test-key")

        assert embedder.model == "text-embedding-3-small"
        assert embedder.dimensions == 384
        assert embedder.client is None
        assert embedder.encoding is not None

    @pytest.mark.asyncio
    async def test_embed_uses_openai_without_endpoint(self, mock_openai_client):
        with patch("src.search.embeddings.AsyncOpenAI", return_value=mock_openai_client) as mock_cls:
            embedder = QueryEmbedder(api_key="test-key")
            embedding = await embedder.embed("claude agents")

        mock_cls.assert_called_once_with(api_key="test-key")
        assert embedding == [0.1] * 384
        call_kwargs = mock_openai_client.embeddings.create.call_args.kwargs
        assert call_kwargs["model"] == "text-embedding-3-small"
        assert call_kwargs["input"] == ["claude agents"]
        assert call_kwargs["dimensions"] == 384
        assert embedder.total_api_calls == 1

    @pytest.mark.asyncio
    async def test_embed_uses_azure_with_endpoint(self, mock_openai_client):
        with patch(
            "src.search.embeddings.AsyncAzureOpenAI", return_value=mock_openai_client
        ) as mock_cls:
            embedder = QueryEmbedder(
                api_key="test-key",
                azure_endpoint="https://test.openai.azure.com",
            )
            await embedder.embed("claude")

        assert mock_cls.call_args.kwargs["azure_endpoint"] == "https://test.openai.azure.com"
        assert mock_cls.call_args.kwargs["api_key"] == "test-key"

    @pytest.mark.asyncio
    async def test_azure_credential_without_key(self, mock_openai_client):
        with patch(
            "src.search.embeddings.AsyncAzureOpenAI", return_value=mock_openai_client
        ) as mock_cls, patch("src.search.embeddings.DefaultAzureCredential") as mock_credential:
            mock_credential.return_value.close = AsyncMock()
            embedder = QueryEmbedder(azure_endpoint="https://test.openai.azure.com")
            await embedder._initialize_client()

            assert "azure_ad_token_provider" in mock_cls.call_args.kwargs
            mock_credential.assert_called_once()
            await embedder.close()

        assert embedder.client is None

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self):
        embedder = QueryEmbedder(api_key="test-key")
        with pytest.raises(ValueError):
            await embedder.embed("   ")

    @pytest.mark.asyncio
    async def test_long_query_truncated(self, mock_openai_client):
        with patch("src.search.embeddings.AsyncOpenAI", return_value=mock_openai_client):
            embedder = QueryEmbedder(api_key="test-key", max_tokens=8)
            await embedder.embed("word " * 200)

        sent = mock_openai_client.embeddings.create.call_args.kwargs["input"][0]
        assert len(embedder.encoding.encode(sent)) <= 8

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, mock_openai_client):
        with patch("src.search.embeddings.AsyncOpenAI", return_value=mock_openai_client):
            async with QueryEmbedder(api_key="test-key") as embedder:
                assert embedder.client is mock_openai_client

        mock_openai_client.close.assert_called_once()
        assert embedder.client is None
