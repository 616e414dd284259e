"""Auth provider (Supabase GoTrue) REST client.

A single pooled httpx.AsyncClient is opened at startup and reused by every request.
"""

import logging
from typing import Any

import httpx

from storefront.config import get_settings
from storefront.constants import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_TOTAL_TIMEOUT,
    SUPABASE_ADMIN_USERS_PATH,
    SUPABASE_SIGNUP_PATH,
)
from storefront.exceptions import AuthProviderError, UpstreamError

logger = logging.getLogger(__name__)

_client: httpx.AsyncClient | None = None


def _new_client() -> httpx.AsyncClient:
    settings = get_settings()
    return httpx.AsyncClient(
        base_url=settings.supabase_url.rstrip("/"),
        timeout=httpx.Timeout(HTTP_TOTAL_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
    )


def get_auth_client() -> httpx.AsyncClient:
    """Return the shared client. Falls back to creating one if not initialized."""
    global _client
    if _client is None:
        _client = _new_client()
    return _client


async def init_auth_client() -> None:
    """Initialize the shared client. Call during app startup."""
    global _client
    _client = _new_client()


async def close_auth_client() -> None:
    """Close the shared client. Call during app shutdown."""
    global _client
    if _client:
        await _client.aclose()
        _client = None


def _error_message(response: httpx.Response) -> str:
    """Pull the provider's own error text out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Auth provider error ({response.status_code})"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Auth provider error ({response.status_code})"


async def sign_up(email: str, password: str, metadata: dict[str, Any]) -> dict[str, Any]:
    """Register a user with the auth provider and return the created user object.

    Raises AuthProviderError with the provider's message when it rejects the signup.
    """
    settings = get_settings()
    try:
        response = await get_auth_client().post(
            SUPABASE_SIGNUP_PATH,
            json={"email": email, "password": password, "data": metadata},
            headers={"apikey": settings.supabase_anon_key},
        )
    except httpx.HTTPError as e:
        logger.error("Auth provider unreachable during signup: %s", e)
        raise UpstreamError("An error occurred during signup") from e

    if response.is_error:
        raise AuthProviderError(_error_message(response))

    body = response.json()
    # Without email confirmation the provider wraps the user in a session
    return body.get("user") or body


async def list_users() -> list[dict[str, Any]]:
    """List every user via the admin API (service-role key)."""
    settings = get_settings()
    key = settings.supabase_service_role_key
    try:
        response = await get_auth_client().get(
            SUPABASE_ADMIN_USERS_PATH,
            params={"per_page": 1000},
            headers={"apikey": key, "Authorization": f"Bearer {key}"},
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error("Auth provider admin listing failed: %s - %s", e.response.status_code, e.response.text[:500])
        raise UpstreamError("An error occurred while fetching users") from e
    except httpx.HTTPError as e:
        logger.error("Auth provider unreachable during user listing: %s", e)
        raise UpstreamError("An error occurred while fetching users") from e

    body = response.json()
    return body.get("users", []) if isinstance(body, dict) else body
