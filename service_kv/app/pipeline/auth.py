"""
Bearer authorization for the admin sub-tree.
"""

import hmac
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from shared.errors import Unauthorized
from shared.logging import get_logger

logger = get_logger("kv.pipeline.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def token_matches(presented: str, expected: str) -> bool:
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


async def require_admin_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <admin_token>``."""
    expected = request.app.state.context.settings.admin_token

    if credentials is None:
        logger.warning("Admin request without bearer token", path=request.url.path)
        raise Unauthorized()

    if not token_matches(credentials.credentials, expected):
        logger.warning("Admin request with invalid bearer token", path=request.url.path)
        raise Unauthorized()
