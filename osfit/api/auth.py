"""Bearer-token authentication and per-request credential dependencies."""

from __future__ import annotations

import logging
from typing import Literal

import jwt
from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from osfit.config import get_settings
from osfit.errors import AuthenticationError
from osfit.llm.credentials import LLMCredentials, UserKeys, resolve_credentials


logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> str:
    """Verify an HS256 access token and return its subject (the user id).

    Raises:
        AuthenticationError: On any validation failure
    """
    settings = get_settings()
    options = {"require": ["sub", "exp"]}
    if not settings.jwt_audience:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected token: {e}")
        raise AuthenticationError() from e

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError()
    return str(user_id)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> str:
    """FastAPI dependency returning the authenticated user id."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError()
    return decode_token(credentials.credentials)


async def get_user_keys(
    x_ai_provider: Literal["gemini", "groq"] | None = Header(default=None),
    x_gemini_key: str | None = Header(default=None),
    x_groq_key: str | None = Header(default=None),
) -> UserKeys:
    """Caller-supplied provider choice and keys, if any."""
    return UserKeys(provider=x_ai_provider, gemini_key=x_gemini_key, groq_key=x_groq_key)


async def get_llm_credentials(user_keys: UserKeys = Depends(get_user_keys)) -> LLMCredentials:
    return resolve_credentials(get_settings(), user_keys)
