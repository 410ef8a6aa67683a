# Core infrastructure
from courseledger.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_user_id,
)
from courseledger.core.exceptions import AppError, StoreUnavailableError
from courseledger.core.logging import configure_structlog, get_logger
from courseledger.core.middleware import RequestContextMiddleware


__all__ = [
    "AppError",
    "RequestContext",
    "RequestContextMiddleware",
    "StoreUnavailableError",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_user_id",
]
