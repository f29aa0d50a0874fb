import logging
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from typing import Optional

logger = logging.getLogger(__name__)

# Define security scheme for Swagger UI (auto_error=False allows us to handle missing tokens gracefully)
security = HTTPBearer(auto_error=False)


def _extract_token(header_val: Optional[str]) -> Optional[str]:
    """Helper to strip 'Bearer ' prefix if present."""
    if not header_val:
        return None
    hv = header_val.strip()
    if hv.lower().startswith("bearer "):
        return hv.split(None, 1)[1].strip()
    return hv  # accept raw token


def create_access_token(owner_id: str, secret: str, **claims) -> str:
    """Issue an HS256 token; used by tests and local tooling."""
    payload = {"sub": str(owner_id), **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


async def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    JWT auth dependency.

    Identity itself is owned by an external provider; we only verify the
    bearer token against JWT_SECRET and read the owner id from `sub`.
    """
    token_value = creds.credentials if creds and creds.credentials else None
    if not token_value:
        token_value = _extract_token(request.headers.get("Authorization"))

    if not token_value:
        logger.warning("Authentication failed: no bearer token")
        raise HTTPException(status_code=401, detail="Unauthorized")

    secret = request.app.state.settings.JWT_SECRET
    try:
        payload = jwt.decode(token_value, secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Token decode error: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")

    owner_id = payload.get("sub")
    if not owner_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"user_id": str(owner_id), "role": payload.get("role", "user")}
