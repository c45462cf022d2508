from .invalidation import invalidate_related, optimistic_student_edit, record_incident_created
from .query_cache import QueryCache

__all__ = [
    "QueryCache",
    "invalidate_related",
    "optimistic_student_edit",
    "record_incident_created",
]
