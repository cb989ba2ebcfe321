"""Authentication endpoints (OAuth2 password flow, delegated to the stock service)."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Form, HTTPException, status

from core.remote import RemoteServiceError, UnauthorizedError
from core.session import ConsoleSession
from backend.dependencies.console import get_settings, get_stock_transport
from backend.dependencies.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    AuthenticatedUser,
    create_session_token,
    get_current_user,
    revoke_session,
)
from backend.schemas.auth import AuthenticatedUserPayload, LogoutResponse, TokenResponse
from backend.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class OAuth2PasswordForm:
    """Formulaire OAuth2 standard (grant_type=password)."""

    def __init__(
        self,
        grant_type: str | None = Form(default=None, pattern="password"),
        username: str = Form(...),
        password: str = Form(...),
        scope: str = Form(default=""),
    ) -> None:
        self.grant_type = grant_type
        self.username = username
        self.password = password
        self.scopes = scope.split()


@router.post("/token", response_model=TokenResponse)
def issue_token(
    form_data: OAuth2PasswordForm = Depends(),
    settings: Settings = Depends(get_settings),
    transport: httpx.BaseTransport | None = Depends(get_stock_transport),
) -> TokenResponse:
    session = ConsoleSession(settings.stock_api_base_url, timeout=settings.stock_api_timeout, transport=transport)
    try:
        state = session.login(form_data.username, form_data.password)
    except UnauthorizedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Identifiants invalides",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except RemoteServiceError as exc:
        logger.warning("Connexion impossible pour %s: %s", form_data.username, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    token = create_session_token(state.username, state.roles, state.token)
    return TokenResponse(
        access_token=token,
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=AuthenticatedUserPayload(username=state.username, roles=sorted(state.roles)),
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(user: AuthenticatedUser = Depends(get_current_user)) -> LogoutResponse:
    revoke_session(user)
    return LogoutResponse()


@router.get("/me", response_model=AuthenticatedUserPayload)
def read_current_user(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUserPayload:
    return AuthenticatedUserPayload(username=user.username, roles=user.roles)
