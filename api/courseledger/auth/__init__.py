"""Identity module.

Sign-up and sign-in are handled by the external identity provider; this
module only verifies the bearer tokens it issues and exposes the caller's
opaque user id.
"""

from .dependencies import CurrentUserId, OptionalUserId
from .security import create_access_token, decode_access_token


__all__ = [
    "CurrentUserId",
    "OptionalUserId",
    "create_access_token",
    "decode_access_token",
]
