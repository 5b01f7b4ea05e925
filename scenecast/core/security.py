from __future__ import annotations

import hmac
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from scenecast.config import Settings, get_settings
from scenecast.core.database import get_db
from scenecast.core.firebase import verify_id_token
from scenecast.schema.sql import User
from scenecast.services.users import create_user, get_user_by_firebase_uid
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

security_scheme = HTTPBearer()


async def _decode_token(token: HTTPAuthorizationCredentials) -> dict[str, Any]:
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})
  if not decoded_claims.get("uid"):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
  return decoded_claims


async def get_current_user(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)], db: AsyncSession = Depends(get_db)) -> User:  # noqa: B008
  """Verify the Firebase ID token and load the matching user."""
  decoded_claims = await _decode_token(token)
  user = await get_user_by_firebase_uid(db, decoded_claims["uid"])
  if not user:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return user


async def get_current_user_or_provision(
  token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)],
  db: AsyncSession = Depends(get_db),  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> User:
  """Verify the token and create the user row on first sight."""
  decoded_claims = await _decode_token(token)
  firebase_uid = decoded_claims["uid"]
  user = await get_user_by_firebase_uid(db, firebase_uid)
  if user:
    return user
  email = decoded_claims.get("email")
  if not email:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token missing email")
  full_name = decoded_claims.get("name")
  return await create_user(db, firebase_uid=firebase_uid, email=str(email), full_name=str(full_name) if full_name else None, signup_credits=settings.free_signup_credits)


async def verify_task_secret(authorization: Annotated[str | None, Header()] = None, settings: Settings = Depends(get_settings)) -> None:  # noqa: B008
  """Guard internal endpoints with the shared task secret (deny when unset)."""
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Internal endpoints are disabled")
  expected = f"Bearer {settings.task_secret}"
  if not authorization or not hmac.compare_digest(authorization, expected):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid task secret")
