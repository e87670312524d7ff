"""Unit tests for search strategy selection."""

import pytest

from src.search.models import SearchRequest, SearchStrategy
from src.search.strategy import select_strategy


class TestSelectStrategy:
    """Tests for select_strategy."""

    def test_default_is_content(self):
        assert select_strategy(SearchRequest(query="claude")) == SearchStrategy.CONTENT

    def test_content_filters_stay_content(self):
        request = SearchRequest(query="x", categories=["agents"], tags=["ai"])
        assert select_strategy(request) == SearchStrategy.CONTENT

    def test_entities_select_unified(self):
        request = SearchRequest(query="x", entities=["company", "user"])
        assert select_strategy(request) == SearchStrategy.UNIFIED

    @pytest.mark.parametrize(
        "job_filter",
        [
            {"job_category": "engineering"},
            {"job_employment": "contract"},
            {"job_experience": "advanced"},
            {"job_remote": True},
            {"job_remote": False},
        ],
    )
    def test_any_job_filter_selects_jobs(self, job_filter):
        assert select_strategy(SearchRequest(**job_filter)) == SearchStrategy.JOBS

    def test_job_filters_override_entities(self):
        request = SearchRequest(entities=["content", "company"], job_category="design")
        assert select_strategy(request) == SearchStrategy.JOBS

    def test_pure(self):
        request = SearchRequest(query="q", entities=["job"])
        before = SearchRequest(**vars(request))
        for _ in range(3):
            assert select_strategy(request) == SearchStrategy.UNIFIED
        assert request == before
