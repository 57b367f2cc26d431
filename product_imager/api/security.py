import secrets
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette import status

from product_imager.config import settings

bearer_scheme = HTTPBearer(auto_error=False)


def token_matches(candidate: Optional[str]) -> bool:
    """Compare a caller-supplied token against the configured API token."""
    if not candidate:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), settings.api_token.encode("utf-8"))


async def require_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """Validate that the caller provides the configured bearer token."""
    if credentials is None or not token_matches(credentials.credentials):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing token")
    return credentials.credentials
