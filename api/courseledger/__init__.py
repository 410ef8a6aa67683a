"""CourseLedger API - course catalog and lesson progress tracking."""

__version__ = "0.1.0"
