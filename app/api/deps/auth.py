"""GitHub credential dependencies.

The access token is obtained and decrypted by the authentication service in
front of this API; requests carry it as a bearer credential.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_github_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Return the GitHub access token from the Authorization header, or 401."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="GitHub access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


GitHubToken = Annotated[str, Depends(get_github_token)]
