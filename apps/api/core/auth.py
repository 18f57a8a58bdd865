"""Centralized authentication dependencies.

Provides a user-scoped Supabase client (Row-Level Security enforced) and the
id of the calling user. Organization membership is enforced by RLS policies
on the ledger tables, not re-checked here.
"""

import os

from fastapi import Depends, Header, HTTPException
from supabase import Client, ClientOptions, create_client

from apps.api.core.config import settings
from apps.api.core.errors import AuthenticationError

DEFAULT_LEDGER_TIMEOUT_SECONDS = 10.0


def _get_supabase_url() -> str:
    url = (settings.SUPABASE_URL if settings else None) or os.environ.get("SUPABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_URL is not configured")
    return url


def _get_supabase_anon_key() -> str:
    key = (settings.SUPABASE_ANON_KEY if settings else None) or os.environ.get(
        "SUPABASE_ANON_KEY"
    )
    if not key:
        raise RuntimeError("SUPABASE_ANON_KEY is not configured")
    return key


def _ledger_timeout() -> float:
    return settings.LEDGER_TIMEOUT_SECONDS if settings else DEFAULT_LEDGER_TIMEOUT_SECONDS


async def get_user_token(authorization: str = Header(default="")) -> str:
    """Extract Bearer token from Authorization header.

    Returns the raw JWT string.
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Missing or invalid Authorization header. Expected: Bearer <token>",
        )

    token = authorization[7:].strip()
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
        )
    return token


async def get_user_client(token: str = Depends(get_user_token)) -> Client:
    """Provide a Supabase client authenticated with the user's JWT.

    Every PostgREST call made through this client is bounded by the ledger
    timeout so a slow database surfaces as an error instead of a hung import.

    Note: We pass an empty string as the refresh token because the API
    gateway is stateless: each request carries a fresh token from the
    client. The backend never refreshes tokens.
    """
    client = create_client(
        _get_supabase_url(),
        _get_supabase_anon_key(),
        options=ClientOptions(postgrest_client_timeout=_ledger_timeout()),
    )
    client.auth.set_session(token, "")
    return client


def get_current_user_id(client: Client = Depends(get_user_client)) -> str:
    """Resolve the calling user's id, or fail with 401."""
    user_response = client.auth.get_user()
    if not user_response or not user_response.user:
        raise AuthenticationError("Invalid bearer token")
    return user_response.user.id
