from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from listify.config import Settings, get_settings

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer(auto_error=False)


async def require_api_token(
  request: Request, settings: Annotated[Settings, Depends(get_settings)], credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)]
) -> str:
  """Accept requests carrying one of the externally issued bearer tokens."""
  # Secure-by-default: with no tokens configured nothing is accepted.
  if not settings.api_tokens:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="API authentication is not configured.")

  if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token", headers={"WWW-Authenticate": "Bearer"})

  token = credentials.credentials
  if not any(secrets.compare_digest(token, allowed) for allowed in settings.api_tokens):
    logger.warning("Rejected bearer token on %s", request.url.path)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})

  return token
