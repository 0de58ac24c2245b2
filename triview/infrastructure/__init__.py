"""Infrastructure adapters for the query and mutation ports."""
from triview.infrastructure.memory_query_service import InMemoryQueryService
from triview.infrastructure.retrying_query_service import RetryingQueryService

__all__ = [
    "InMemoryQueryService",
    "RetryingQueryService",
]
