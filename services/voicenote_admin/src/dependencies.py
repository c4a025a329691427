"""Admin authentication dependencies."""

import hashlib
import hmac
import secrets
from urllib.parse import urlsplit

from fastapi import Depends, Form, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

security = HTTPBasic(auto_error=False)


def verify_admin(
    request: Request,
    credentials: HTTPBasicCredentials | None = Depends(security),
) -> str:
    """
    Verify the single administrative account.

    Returns the admin username if the credentials match.
    Raises HTTPException if admin access is not configured or the check fails.
    """
    settings = request.app.state.settings

    if not settings.admin_password:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin authentication not configured",
        )

    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Admin credentials required",
        headers={"WWW-Authenticate": "Basic"},
    )
    if credentials is None:
        raise unauthorized

    username_ok = secrets.compare_digest(
        credentials.username.encode(), settings.admin_username.encode()
    )
    password_ok = secrets.compare_digest(
        credentials.password.encode(), settings.admin_password.encode()
    )
    if not (username_ok and password_ok):
        raise unauthorized

    return credentials.username


def delete_token(settings, filename: str) -> str:
    """Form token authorising deletion of one voicenote, keyed on the admin credentials."""
    key = f"{settings.admin_username}:{settings.admin_password}".encode()
    return hmac.new(key, f"delete:{filename}".encode(), hashlib.sha256).hexdigest()


def verify_delete_request(
    request: Request,
    filename: str,
    csrf_token: str = Form(default=""),
) -> None:
    """
    Reject delete requests that did not come from the admin listing.

    The Origin (or Referer) header, when sent, must match the admin host,
    and the form must carry the token rendered for this file.
    """
    forbidden = HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Invalid or missing security token.",
    )

    source = request.headers.get("origin") or request.headers.get("referer")
    if source is not None and urlsplit(source).netloc != request.url.netloc:
        raise forbidden

    expected = delete_token(request.app.state.settings, filename)
    if not secrets.compare_digest(csrf_token.encode(), expected.encode()):
        raise forbidden
