"""Unit tests for the CLI tool.

Tests the CLI commands, argument parsing, and output formatting.
"""

from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from src.api.routers.search import build_search_request
from src.api.validation import CONTENT_CATEGORIES
from src.cli.main import (
    DEFAULT_API_BASE_URL,
    EXAMPLE_CATEGORIES,
    app,
    build_search_params,
    get_api_base_url,
    get_headers,
)

runner = CliRunner()

RealAsyncClient = httpx.AsyncClient


def mock_api(handler):
    """Route the CLI's HTTP client through a mock transport."""
    transport = httpx.MockTransport(handler)

    def factory(**kwargs):
        return RealAsyncClient(transport=transport, **kwargs)

    return patch("src.cli.main.httpx.AsyncClient", side_effect=factory)


SEARCH_RESPONSE = {
    "results": [
        {
            "id": "1",
            "title": "Reviewer",
            "description": "Reviews pull requests",
            "category": "agents",
            "author": "alice",
            "relevance_score": 0.91,
            "source": "semantic",
        }
    ],
    "query": "review",
    "filters": {},
    "pagination": {"total": 1, "limit": 1, "offset": 0, "hasMore": True},
    "performance": {"dbTime": 12, "totalTime": 20},
    "searchType": "content",
}


class TestConfiguration:
    """Tests for configuration helpers."""

    def test_get_api_base_url_default(self):
        """Should return default URL when env var not set."""
        with patch.dict("os.environ", {}, clear=True):
            assert get_api_base_url() == DEFAULT_API_BASE_URL

    def test_get_api_base_url_from_env(self):
        with patch.dict("os.environ", {"DIRECTORY_SEARCH_API_URL": "https://search.example.com"}):
            assert get_api_base_url() == "https://search.example.com"

    def test_get_headers_with_token(self):
        headers = get_headers("test-token")
        assert headers["Accept"] == "application/json"
        assert headers["Authorization"] == "Bearer test-token"

    def test_get_headers_without_token(self):
        assert "Authorization" not in get_headers(None)
        assert "Authorization" not in get_headers("")


class TestBuildSearchParams:
    """Tests for translating options into query parameters."""

    def test_unset_options_dropped(self):
        params = build_search_params("claude")
        assert params == {"q": "claude", "limit": 20, "offset": 0}

    def test_job_filters(self):
        params = build_search_params(
            "python",
            job_category="engineering",
            job_employment="full-time",
            remote=True,
        )
        assert params["job_category"] == "engineering"
        assert params["job_employment"] == "full-time"
        assert params["job_remote"] == "true"

    def test_onsite(self):
        assert build_search_params("x", remote=False)["job_remote"] == "false"

    def test_params_accepted_by_search_router(self):
        """Every emitted key is a /search query parameter."""
        params = build_search_params(
            "python",
            categories="agents",
            entities="job",
            sort="newest",
            job_category="engineering",
            job_employment="contract",
            job_experience="advanced",
            remote=True,
        )

        request = build_search_request(**{key: str(value) for key, value in params.items()})

        assert request.job_category == "engineering"
        assert request.job_employment == "contract"
        assert request.job_experience == "advanced"
        assert request.job_remote is True
        assert request.has_job_filters


class TestSearchCommand:
    """Tests for the search command."""

    def test_search_sends_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=SEARCH_RESPONSE)

        with mock_api(handler):
            result = runner.invoke(
                app,
                ["search", "review", "-c", "agents", "-n", "1", "-u", "http://api.test"],
            )

        assert result.exit_code == 0, result.stdout
        assert seen["path"] == "/search"
        assert seen["params"] == {
            "q": "review",
            "categories": "agents",
            "limit": "1",
            "offset": "0",
        }
        assert "Reviewer" in result.stdout
        assert "--offset 1" in result.stdout

    def test_job_filters_sent_as_query_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={**SEARCH_RESPONSE, "searchType": "unified"})

        with mock_api(handler):
            result = runner.invoke(
                app,
                [
                    "search",
                    "python",
                    "--job-category",
                    "engineering",
                    "--job-experience",
                    "advanced",
                    "--remote",
                    "-u",
                    "http://api.test",
                ],
            )

        assert result.exit_code == 0, result.stdout
        assert seen["params"] == {
            "q": "python",
            "limit": "20",
            "offset": "0",
            "job_category": "engineering",
            "job_experience": "advanced",
            "job_remote": "true",
        }

    def test_search_table_output(self):
        with mock_api(lambda request: httpx.Response(200, json=SEARCH_RESPONSE)):
            result = runner.invoke(app, ["search", "review", "-o", "table", "-u", "http://api.test"])

        assert result.exit_code == 0
        assert "Reviewer" in result.stdout
        assert "0.910" in result.stdout

    def test_search_json_output(self):
        with mock_api(lambda request: httpx.Response(200, json=SEARCH_RESPONSE)):
            result = runner.invoke(app, ["search", "review", "-o", "json", "-u", "http://api.test"])

        assert result.exit_code == 0
        assert '"searchType": "content"' in result.stdout

    def test_search_no_results(self):
        body = {**SEARCH_RESPONSE, "results": []}
        with mock_api(lambda request: httpx.Response(200, json=body)):
            result = runner.invoke(app, ["search", "nothing", "-u", "http://api.test"])

        assert result.exit_code == 0
        assert "No results found" in result.stdout

    def test_search_sends_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=SEARCH_RESPONSE)

        with mock_api(handler):
            runner.invoke(app, ["search", "review", "--token", "abc", "-u", "http://api.test"])

        assert seen["auth"] == "Bearer abc"

    def test_client_error_reported(self):
        body = {"error": "Invalid limit parameter (must be between 1 and 100)"}
        with mock_api(lambda request: httpx.Response(400, json=body)):
            result = runner.invoke(app, ["search", "x", "-n", "500", "-u", "http://api.test"])

        assert result.exit_code == 1
        assert "400" in result.stdout
        assert "Invalid limit parameter" in result.stdout

    def test_rate_limit_reported(self):
        body = {"error": "Rate limit exceeded. Try again in 42 seconds.", "retryAfter": 42}
        with mock_api(lambda request: httpx.Response(429, json=body)):
            result = runner.invoke(app, ["search", "x", "-u", "http://api.test"])

        assert result.exit_code == 1
        assert "Retry in 42 seconds" in result.stdout

    def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with mock_api(handler):
            result = runner.invoke(app, ["search", "x", "-u", "http://api.test"])

        assert result.exit_code == 1
        assert "Could not connect" in result.stdout

    def test_category_examples_are_known_categories(self):
        assert set(EXAMPLE_CATEGORIES) <= set(CONTENT_CATEGORIES)

    def test_search_help(self):
        result = runner.invoke(app, ["search", "--help"])
        assert result.exit_code == 0
        assert "--categories" in result.stdout
        assert "--entities" in result.stdout
        assert "--api-url" in result.stdout


class TestAutocompleteCommand:
    """Tests for the autocomplete command."""

    def test_requires_query(self):
        result = runner.invoke(app, ["autocomplete"])
        assert result.exit_code != 0

    def test_shows_suggestions(self):
        body = {
            "suggestions": [{"text": "claude", "searchCount": 12, "isPopular": True}],
            "query": "cl",
        }
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["q"] = request.url.params["q"]
            return httpx.Response(200, json=body)

        with mock_api(handler):
            result = runner.invoke(app, ["autocomplete", "cl", "-u", "http://api.test"])

        assert result.exit_code == 0
        assert seen == {"path": "/search/autocomplete", "q": "cl"}
        assert "claude" in result.stdout
        assert "12" in result.stdout

    def test_no_suggestions(self):
        with mock_api(lambda request: httpx.Response(200, json={"suggestions": [], "query": "zz"})):
            result = runner.invoke(app, ["autocomplete", "zz", "-u", "http://api.test"])

        assert result.exit_code == 0
        assert "No suggestions" in result.stdout


class TestFacetsCommand:
    """Tests for the facets command."""

    def test_shows_facets(self):
        body = {
            "facets": [
                {"category": "agents", "contentCount": 57, "tags": ["ai"], "authors": ["alice"]}
            ]
        }
        with mock_api(lambda request: httpx.Response(200, json=body)):
            result = runner.invoke(app, ["facets", "-u", "http://api.test"])

        assert result.exit_code == 0
        assert "agents" in result.stdout
        assert "57" in result.stdout

    def test_backend_error(self):
        body = {"error": "Search backend failure", "rpc": "get_search_facets"}
        with mock_api(lambda request: httpx.Response(502, json=body)):
            result = runner.invoke(app, ["facets", "-u", "http://api.test"])

        assert result.exit_code == 1
        assert "502" in result.stdout


class TestVersionAndConfig:
    """Tests for the version and config commands."""

    def test_version_output(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Directory Search CLI" in result.stdout
        assert "Version" in result.stdout

    def test_config_shows_api_url(self):
        with patch.dict("os.environ", {}, clear=True):
            result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "API URL" in result.stdout
        assert "default" in result.stdout


class TestAppStructure:
    """Tests for overall app structure and configuration."""

    def test_app_has_name(self):
        assert app.info.name == "dirsearch"

    @pytest.mark.parametrize("command", ["search", "autocomplete", "facets", "version", "config"])
    def test_commands_listed(self, command):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert command in result.stdout
