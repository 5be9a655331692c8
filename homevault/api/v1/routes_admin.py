from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from homevault.api.deps import AuthDependency
from homevault.core.config import Settings, get_settings
from homevault.ingest import toolchain_status

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])


class DevTokenRequest(BaseModel):
    household_id: str = Field(..., examples=["demo-household"])
    scopes: list[str] = Field(default_factory=lambda: ["admin"])
    user_id: str | None = Field(default=None, examples=["user-123"])


class DevTokenResponse(BaseModel):
    token: str


@router.get("/env-check", response_model=EnvCheckResponse, summary="Validate ffmpeg and heif-convert")
async def env_check(context: AuthDependency, settings: Settings = Depends(get_settings)) -> EnvCheckResponse:
    if "admin" not in context.scopes:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin_scope_required")
    return EnvCheckResponse(**toolchain_status(settings))


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint development JWT")
async def mint_dev_token(payload: DevTokenRequest, settings: Settings = Depends(get_settings)) -> DevTokenResponse:
    if settings.environment_lower not in {"development", "dev"}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="dev_token_disabled")

    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(hours=1)
    claims: dict[str, object] = {
        "household_id": payload.household_id,
        "scopes": payload.scopes,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if payload.user_id:
        claims["sub"] = payload.user_id
    if settings.jwt_issuer:
        claims["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience

    token = jwt.encode(claims, settings.secrets.jwt_secret, algorithm=settings.jwt_algorithm)
    return DevTokenResponse(token=token)


__all__ = ["router"]
