"""Endpoints and login exchange of the World Class member portal."""

from __future__ import annotations

from urllib.parse import urljoin

import httpx
import structlog

from .config import Credentials
from .errors import AuthenticationError

LOGGER = structlog.get_logger(__name__)

LOGIN_PATH = "_process_login.php"
DASHBOARD_PATH = "dashboard.php"
SCHEDULE_PATH = "member-schedule.php"
BOOK_CLASS_PATH = "_book_class.php"


def portal_url(base_url: str, path: str) -> str:
    """Join a portal path onto the base URL."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def normalise_location(base_url: str, location: str) -> str:
    """Resolve a redirect location against the base URL so it can be compared."""
    if not location:
        return location
    try:
        return urljoin(base_url.rstrip("/") + "/", location)
    except ValueError:
        return location


def login_form(credentials: Credentials) -> dict[str, str]:
    return {
        "email": credentials.email,
        "member_password": credentials.password.get_secret_value(),
        "remember_me": "false",
    }


async def login(client: httpx.AsyncClient, base_url: str, credentials: Credentials) -> None:
    """
    Post the login form and check the portal accepted it.

    The portal signals success only by redirecting to the dashboard, so the
    redirect is inspected rather than followed. Cookies land in ``client``.
    """
    url = portal_url(base_url, LOGIN_PATH)
    LOGGER.debug("login.start", url=url, email=credentials.email)
    try:
        response = await client.post(url, data=login_form(credentials), follow_redirects=False)
    except httpx.HTTPError as exc:
        raise AuthenticationError(f"login request failed: {exc}") from exc

    if not response.is_redirect:
        LOGGER.error("login.failed", status_code=response.status_code)
        raise AuthenticationError(
            f"login failed: expected redirect, got status {response.status_code}",
            status_code=response.status_code,
        )

    location = normalise_location(base_url, response.headers.get("location", ""))
    if location != portal_url(base_url, DASHBOARD_PATH):
        LOGGER.error("login.failed", status_code=response.status_code, location=location)
        raise AuthenticationError(
            f"login failed: unexpected redirect to {location}",
            status_code=response.status_code,
            location=location,
        )

    LOGGER.debug("login.complete", redirected_to=location)
