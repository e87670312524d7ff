"""Directory Search CLI - Query the search API from a terminal.

This module provides a command-line client for the Directory Search API,
allowing users to:
- Search directory content, or jobs, companies and users together
- Fetch autocomplete suggestions from search history
- List per-category facets
"""

import asyncio
import json
import os
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="dirsearch",
    help="Directory Search CLI - Query the unified directory search API",
    no_args_is_help=True,
)
console = Console()

# Default configuration - can be overridden by environment variables
DEFAULT_API_BASE_URL = "http://localhost:8000"
API_URL_ENV_VAR = "DIRECTORY_SEARCH_API_URL"
TOKEN_ENV_VAR = "DIRECTORY_SEARCH_TOKEN"

REQUEST_TIMEOUT = 30.0
DESCRIPTION_PREVIEW_LENGTH = 300

# Shown in --categories help
EXAMPLE_CATEGORIES = ("agents", "mcp", "rules", "commands", "hooks", "skills")


def get_api_base_url() -> str:
    """Get the API base URL from environment or default."""
    return os.getenv(API_URL_ENV_VAR, DEFAULT_API_BASE_URL)


def get_headers(token: str | None) -> dict[str, str]:
    """Get request headers including authorization if a token is available.

    The token is only used by the API to attribute search analytics; searches
    work the same without it.
    """
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def build_search_params(
    query: str,
    categories: str | None = None,
    tags: str | None = None,
    authors: str | None = None,
    entities: str | None = None,
    sort: str | None = None,
    limit: int = 20,
    offset: int = 0,
    job_category: str | None = None,
    job_employment: str | None = None,
    job_experience: str | None = None,
    remote: bool | None = None,
) -> dict[str, Any]:
    """Translate CLI options into /search query parameters, dropping unset ones."""
    params: dict[str, Any] = {
        "q": query,
        "categories": categories,
        "tags": tags,
        "authors": authors,
        "entities": entities,
        "sort": sort,
        "limit": limit,
        "offset": offset,
        "job_category": job_category,
        "job_employment": job_employment,
        "job_experience": job_experience,
    }
    if remote is not None:
        params["job_remote"] = "true" if remote else "false"
    return {key: value for key, value in params.items() if value is not None}


def _report_http_error(e: httpx.HTTPStatusError, action: str) -> None:
    """Print the API's error body for a failed request."""
    console.print(f"[red]{action} failed: {e.response.status_code}[/red]")
    try:
        body = e.response.json()
    except ValueError:
        return

    if isinstance(body, dict) and body.get("error"):
        console.print(f"[red]{body['error']}[/red]")
    if e.response.status_code == 429:
        retry_after = body.get("retryAfter") if isinstance(body, dict) else None
        retry_after = retry_after or e.response.headers.get("Retry-After")
        if retry_after:
            console.print(f"[yellow]Retry in {retry_after} seconds.[/yellow]")


async def _get_json(
    path: str,
    params: dict[str, Any],
    base_url: str,
    token: str | None,
    action: str,
) -> dict[str, Any]:
    """GET a JSON document from the API, exiting with status 1 on failure."""
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        try:
            response = await client.get(
                f"{base_url.rstrip('/')}{path}",
                params=params,
                headers=get_headers(token),
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            _report_http_error(e, action)
            raise typer.Exit(1)
        except httpx.ConnectError:
            console.print(f"[red]Could not connect to API at {base_url}[/red]")
            console.print("[yellow]Make sure the API server is running.[/yellow]")
            raise typer.Exit(1)


@app.command()
def search(
    query: str = typer.Argument("", help="Search query (may be empty to browse)"),
    categories: str = typer.Option(
        None,
        "--categories",
        "-c",
        help=f"Comma-separated content categories ({', '.join(EXAMPLE_CATEGORIES)}, ...)",
    ),
    tags: str = typer.Option(None, "--tags", help="Comma-separated tags"),
    authors: str = typer.Option(None, "--authors", help="Comma-separated authors"),
    entities: str = typer.Option(
        None,
        "--entities",
        "-e",
        help="Comma-separated entity types for unified search (content, company, job, user)",
    ),
    sort: str = typer.Option(
        None,
        "--sort",
        "-s",
        help="Sort order: relevance, popularity, newest, alphabetical",
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Results per page (1-100)"),
    offset: int = typer.Option(0, "--offset", help="Results to skip"),
    job_category: str = typer.Option(None, "--job-category", help="Job category filter"),
    job_employment: str = typer.Option(None, "--job-employment", help="Employment type filter"),
    job_experience: str = typer.Option(None, "--job-experience", help="Experience level filter"),
    remote: bool = typer.Option(None, "--remote/--onsite", help="Only remote or only on-site jobs"),
    output_format: str = typer.Option(
        "panels",
        "--output",
        "-o",
        help="Output format: panels, table, or json",
    ),
    token: str = typer.Option(
        None,
        "--token",
        help="Bearer token used to attribute search analytics",
        envvar=TOKEN_ENV_VAR,
    ),
    api_url: str = typer.Option(
        None,
        "--api-url",
        "-u",
        help=f"API base URL (overrides {API_URL_ENV_VAR} env var)",
        envvar=API_URL_ENV_VAR,
    ),
) -> None:
    """Search directory content, jobs, companies and users.

    Examples:
        dirsearch search "claude"
        dirsearch search -c agents,mcp -s newest "code review"
        dirsearch search --job-category engineering --remote "python"
        dirsearch search -e company,user "anthropic"
    """
    base_url = api_url or get_api_base_url()
    params = build_search_params(
        query,
        categories=categories,
        tags=tags,
        authors=authors,
        entities=entities,
        sort=sort,
        limit=limit,
        offset=offset,
        job_category=job_category,
        job_employment=job_employment,
        job_experience=job_experience,
        remote=remote,
    )
    asyncio.run(_search(params, output_format, base_url, token))


async def _search(
    params: dict[str, Any],
    output_format: str,
    base_url: str,
    token: str | None,
) -> None:
    """Execute a search and display the results."""
    data = await _get_json("/search", params, base_url, token, "Search")

    if output_format == "json":
        console.print(json.dumps(data, indent=2))
        return

    results = data.get("results", [])
    pagination = data.get("pagination", {})
    performance = data.get("performance", {})

    console.print()
    console.print(
        f"[bold]{len(results)} result(s)[/bold] "
        f"[dim]({data.get('searchType', 'content')} search, "
        f"{performance.get('totalTime', 0)} ms)[/dim]"
    )
    console.print()

    if not results:
        console.print("[dim]No results found.[/dim]")
        return

    if output_format == "table":
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Category")
        table.add_column("Author")
        table.add_column("Score", justify="right")

        for i, result in enumerate(results, 1):
            score = result.get("relevance_score")
            table.add_row(
                str(i + pagination.get("offset", 0)),
                str(result.get("title") or ""),
                str(result.get("category") or result.get("entity_type") or ""),
                str(result.get("author") or ""),
                f"{score:.3f}" if isinstance(score, (int, float)) else "",
            )
        console.print(table)
    else:
        for i, result in enumerate(results, 1):
            description = result.get("description") or ""
            # Truncate long descriptions
            if len(description) > DESCRIPTION_PREVIEW_LENGTH:
                description = description[:DESCRIPTION_PREVIEW_LENGTH] + "..."

            title_parts = [f"[{i}] {result.get('title') or result.get('id', '')}"]
            kind = result.get("category") or result.get("entity_type")
            if kind:
                title_parts.append(str(kind))
            if result.get("source"):
                title_parts.append(str(result["source"]))

            console.print(
                Panel(
                    description or "[dim]No description[/dim]",
                    title=" | ".join(title_parts),
                    subtitle=result.get("author") or None,
                    border_style="green",
                )
            )

    if pagination.get("hasMore"):
        next_offset = pagination.get("offset", 0) + pagination.get("limit", len(results))
        console.print(f"\n[dim]More results available (use --offset {next_offset})[/dim]")


@app.command()
def autocomplete(
    query: str = typer.Argument(..., help="Query prefix (at least 2 characters)"),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum suggestions (1-20)"),
    api_url: str = typer.Option(
        None,
        "--api-url",
        "-u",
        help="API base URL",
        envvar=API_URL_ENV_VAR,
    ),
) -> None:
    """Show autocomplete suggestions from search history.

    Examples:
        dirsearch autocomplete cl
        dirsearch autocomplete -n 5 "code"
    """
    base_url = api_url or get_api_base_url()
    asyncio.run(_autocomplete(query, limit, base_url))


async def _autocomplete(query: str, limit: int, base_url: str) -> None:
    data = await _get_json(
        "/search/autocomplete",
        {"q": query, "limit": limit},
        base_url,
        None,
        "Autocomplete",
    )

    suggestions = data.get("suggestions", [])
    if not suggestions:
        console.print("[dim]No suggestions.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Suggestion")
    table.add_column("Searches", justify="right")
    table.add_column("Popular")

    for suggestion in suggestions:
        table.add_row(
            suggestion.get("text", ""),
            str(suggestion.get("searchCount", 0)),
            "yes" if suggestion.get("isPopular") else "",
        )
    console.print(table)


@app.command()
def facets(
    api_url: str = typer.Option(
        None,
        "--api-url",
        "-u",
        help="API base URL",
        envvar=API_URL_ENV_VAR,
    ),
) -> None:
    """List content categories with their counts, tags and authors."""
    base_url = api_url or get_api_base_url()
    asyncio.run(_facets(base_url))


async def _facets(base_url: str) -> None:
    data = await _get_json("/search/facets", {}, base_url, None, "Facets")

    facet_list = data.get("facets", [])
    if not facet_list:
        console.print("[dim]No facets available.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Category")
    table.add_column("Items", justify="right")
    table.add_column("Tags")
    table.add_column("Authors", justify="right")

    for facet in facet_list:
        tags = facet.get("tags", [])
        tag_preview = ", ".join(tags[:5])
        if len(tags) > 5:
            tag_preview += f" (+{len(tags) - 5})"
        table.add_row(
            facet.get("category", ""),
            str(facet.get("contentCount", 0)),
            tag_preview,
            str(len(facet.get("authors", []))),
        )
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print("[bold]Directory Search CLI[/bold]")
    console.print("Version: 1.0.0")
    console.print()
    console.print(f"API URL: {get_api_base_url()}")


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print("[bold]Current Configuration[/bold]")
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_column("Source")

    api_url = os.getenv(API_URL_ENV_VAR)
    table.add_row(
        "API URL",
        api_url or DEFAULT_API_BASE_URL,
        "env" if api_url else "default",
    )

    token = os.getenv(TOKEN_ENV_VAR)
    table.add_row(
        "Analytics Token",
        "[green]set[/green]" if token else "[yellow]not set (anonymous)[/yellow]",
        "env" if token else "-",
    )

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
