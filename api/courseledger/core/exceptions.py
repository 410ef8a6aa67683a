"""Base application errors shared by the catalog and progress modules."""


class AppError(Exception):
    """Base error carrying a user-facing message and a stable code."""

    def __init__(self, message: str, code: str = "app_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class StoreUnavailableError(AppError):
    """The record store or catalog store could not be reached.

    Nothing was committed; the caller may retry.
    """

    def __init__(
        self,
        message: str = "Progress store is unavailable. Please try again shortly.",
    ):
        super().__init__(message, "store_unavailable")
