from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from .config import Settings, get_settings

BEARER_PREFIX = "Bearer "


# Parsed by hand instead of HTTPBearer: the scheme must match "Bearer " exactly,
# HTTPBearer accepts any casing.
def extract_bearer_token(authorization: str | None) -> str:
    if authorization and authorization.startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX):]
    return ""


def require_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <API_KEY>``.

    An unset API_KEY locks every protected endpoint instead of opening them.
    """
    token = extract_bearer_token(authorization)
    if not settings.API_KEY or token != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Unauthorized"},
        )
