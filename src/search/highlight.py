"""Search term highlighting.

Wraps matched query terms in marker tags. Text outside and inside matches is
HTML-escaped before wrapping, so neither the stored text nor the query can
break out of the marker markup.
"""

import html
import re
from typing import Any

DEFAULT_TAG = "mark"


def _query_terms(query: str) -> list[str]:
    """Split a query into unique terms, longest first."""
    seen: set[str] = set()
    terms = []
    for term in query.split():
        key = term.lower()
        if key not in seen:
            seen.add(key)
            terms.append(term)
    return sorted(terms, key=len, reverse=True)


def _build_pattern(query: str, whole_words_only: bool) -> re.Pattern[str] | None:
    terms = _query_terms(query)
    if not terms:
        return None
    alternation = "|".join(re.escape(term) for term in terms)
    if whole_words_only:
        return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)
    return re.compile(f"(?:{alternation})", re.IGNORECASE)


def highlight_search_terms(
    text: str,
    query: str,
    whole_words_only: bool = False,
    tag: str = DEFAULT_TAG,
) -> str:
    """Wrap case-insensitive matches of the query terms in ``<tag>`` markers.

    Args:
        text: Text to highlight
        query: Raw user query; split on whitespace into terms
        whole_words_only: Only match complete words (titles, descriptions)
            instead of arbitrary substrings (authors, tags)
        tag: Marker element name

    Returns:
        HTML-safe text with matches wrapped
    """
    if not text:
        return ""

    pattern = _build_pattern(query or "", whole_words_only)
    if pattern is None:
        return html.escape(text)

    parts = []
    last_end = 0
    for match in pattern.finditer(text):
        start, end = match.span()
        if start == end:
            continue
        parts.append(html.escape(text[last_end:start]))
        parts.append(f"<{tag}>{html.escape(match.group(0))}</{tag}>")
        last_end = end
    parts.append(html.escape(text[last_end:]))
    return "".join(parts)


def highlight_search_terms_array(
    texts: list[str],
    query: str,
    whole_words_only: bool = False,
    tag: str = DEFAULT_TAG,
) -> list[str]:
    """Highlight every string in a list."""
    return [highlight_search_terms(text, query, whole_words_only, tag) for text in texts]


def highlight_result(result: dict[str, Any], query: str) -> dict[str, Any]:
    """Return a copy of one result with ``*_highlighted`` fields added.

    Titles and descriptions use whole-word matching; authors and tags use
    substring matching so partial names still light up. Missing or empty
    fields are skipped.
    """
    highlighted = dict(result)

    title = result.get("title")
    if isinstance(title, str) and title:
        highlighted["title_highlighted"] = highlight_search_terms(title, query, whole_words_only=True)

    description = result.get("description")
    if isinstance(description, str) and description:
        highlighted["description_highlighted"] = highlight_search_terms(
            description, query, whole_words_only=True
        )

    author = result.get("author")
    if isinstance(author, str) and author:
        highlighted["author_highlighted"] = highlight_search_terms(author, query, whole_words_only=False)

    tags = result.get("tags")
    if isinstance(tags, list) and tags:
        string_tags = [tag for tag in tags if isinstance(tag, str)]
        if string_tags:
            highlighted["tags_highlighted"] = highlight_search_terms_array(
                string_tags, query, whole_words_only=False
            )

    return highlighted


def highlight_results(results: list[dict[str, Any]], query: str) -> list[dict[str, Any]]:
    """Highlight a page of results.

    A blank query leaves every result unchanged, but still returns shallow
    copies so callers can mutate the output safely.
    """
    if not query or not query.strip():
        return [dict(result) for result in results]
    return [highlight_result(result, query) for result in results]
