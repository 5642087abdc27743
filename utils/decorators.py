from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import current_app, request

from services.errors import Forbidden, InvalidToken, Unauthorized
from utils.security import TokenIssuer, TokenPayload


def authenticate_header(header: Optional[str], issuer: TokenIssuer) -> TokenPayload:
    """
    Validate an `Authorization: Bearer <token>` header value.
    - missing header                  -> Unauthorized (401)
    - anything but "Bearer <token>"   -> Unauthorized (401)
    - bad signature / expired token   -> Forbidden (403)
    No database access: access tokens are self-contained.
    """
    if not header:
        raise Unauthorized("No authorization header")

    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise Unauthorized("Invalid authorization format")

    try:
        return issuer.verify_access(parts[1])
    except InvalidToken:
        raise Forbidden("Invalid or expired token") from None


def current_identity() -> TokenPayload:
    """Authenticate the current request against the app's token issuer."""
    issuer = current_app.extensions["token_issuer"]
    return authenticate_header(request.headers.get("Authorization"), issuer)


def jwt_required():
    """
    Gate a view on a valid access token. The decoded identity is passed to the
    view as the `identity` keyword argument.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            identity = current_identity()
            return fn(*args, identity=identity, **kwargs)

        return wrapper

    return decorator
