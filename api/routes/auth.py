"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/auth/login     -- password login; returns a bearer token
  POST /api/auth/register  -- self-registration (can be disabled in config)
  GET  /api/auth/me        -- the caller's resolved identity (requires auth)

Security:
  Login goes through authenticate_user(), which costs the same for unknown names.
  Login responses carry Cache-Control: no-store.
  Wrong username and wrong password produce the same 401 body.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import LoginRequest, LoginResponse, MeResponse, RegisterRequest, RegisterResponse
from auth.accounts import authenticate_user, register_user
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.store import UserStore
from auth.tokens import create_access_token
from core.config import get_settings

logger = logging.getLogger("taskguard.api")

# Auth policy:
# - POST /api/auth/login:     public
# - POST /api/auth/register:  public while SELF_REGISTRATION_ENABLED is true
# - GET  /api/auth/me:        requires auth (get_current_identity)
router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Exchange username and password for a signed identity token.

    A failed login raises AuthenticationFailure, which the app-level handler
    turns into 401 {"error": "Invalid credentials"}.
    """
    user_store: UserStore = request.app.state.user_store
    response.headers["Cache-Control"] = "no-store"
    user = authenticate_user(user_store, body.username, body.password)
    token = create_access_token(user)
    logger.info("Login succeeded for %s", user.username)
    return LoginResponse(token=token, username=user.username, roles=sorted(user.roles))


@router.post("/auth/register", response_model=RegisterResponse)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create an account.

    Duplicate usernames and unknown role labels raise ValidationConflict (400).
    """
    if not get_settings().self_registration_enabled:
        raise HTTPException(status_code=403, detail="Self-registration is disabled")
    user_store: UserStore = request.app.state.user_store
    user = register_user(user_store, body.username, body.password, body.requested_roles())
    return RegisterResponse(username=user.username)


@router.get("/auth/me", response_model=MeResponse)
def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return the identity established for this request."""
    return MeResponse(username=identity.username, roles=sorted(identity.roles))
