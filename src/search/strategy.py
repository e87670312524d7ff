"""Search strategy selection."""

from src.search.models import SearchRequest, SearchStrategy


def select_strategy(request: SearchRequest) -> SearchStrategy:
    """Classify a request into one of the three backend strategies.

    Any job filter forces the jobs strategy regardless of entities. An
    entities selector without job filters routes to federated search.
    Everything else is a content search.
    """
    if request.has_job_filters:
        return SearchStrategy.JOBS
    if request.entities:
        return SearchStrategy.UNIFIED
    return SearchStrategy.CONTENT
