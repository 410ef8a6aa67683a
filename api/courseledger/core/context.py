"""Request context management using contextvars.

Every request gets an id, and authenticated requests carry the caller's
user id, so log lines emitted deep inside the ledger can be correlated
without threading those values through every call.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | None) -> None:
    """Set the opaque user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_context() -> dict[str, Any]:
    """Get the non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    return context


def clear_context() -> None:
    """Clear all context variables (end of request)."""
    request_id_var.set("")
    user_id_var.set(None)


class RequestContext:
    """Context manager for code running outside an HTTP request.

    Usage:
        with RequestContext(user_id="uid-123"):
            await ledger.mark_lesson_complete("uid-123", "intro-html", 0)
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        self.request_id = request_id
        self.user_id = user_id
        self._request_token: Token[str] | None = None
        self._user_token: Token[str | None] | None = None

    def __enter__(self) -> "RequestContext":
        self._request_token = request_id_var.set(
            self.request_id or generate_request_id()
        )
        if self.user_id is not None:
            self._user_token = user_id_var.set(self.user_id)
        return self

    def __exit__(self, *_: object) -> None:
        if self._user_token is not None:
            user_id_var.reset(self._user_token)
        if self._request_token is not None:
            request_id_var.reset(self._request_token)
