"""Course catalog module.

Provides:
- Catalog entries (courses with their ordered lessons)
- In-memory catalog service loaded from built-in courses or a JSON file
"""

from .models import CourseCatalogEntry, LessonSpec
from .service import CatalogError, CatalogService, CourseNotFoundError


__all__ = [
    "CatalogError",
    "CatalogService",
    "CourseCatalogEntry",
    "CourseNotFoundError",
    "LessonSpec",
]
