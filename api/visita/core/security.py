"""Bearer token handling.

Staff identity comes from the diocesan identity provider, which signs tokens
with the shared SECRET_KEY. `sub` carries the user's email. This service only
issues tokens for tooling and tests.
"""
from datetime import timedelta
from typing import Any, Dict, Optional
from jose import JWTError, jwt
from visita.core.config import settings
from visita.core.time import utc_now

ACCESS_TOKEN_EXPIRE_MINUTES = 1440


def _claims_options() -> Dict[str, Any]:
    """Issuer/audience are only enforced when configured."""
    kwargs: Dict[str, Any] = {
        "options": {
            "verify_aud": bool(settings.JWT_AUDIENCE),
            "verify_iss": bool(settings.JWT_ISSUER),
        }
    }
    if settings.JWT_AUDIENCE:
        kwargs["audience"] = settings.JWT_AUDIENCE
    if settings.JWT_ISSUER:
        kwargs["issuer"] = settings.JWT_ISSUER
    return kwargs


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    claims = dict(data)
    claims["exp"] = utc_now() + timedelta(minutes=expires_minutes)
    if settings.JWT_ISSUER:
        claims["iss"] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        claims["aud"] = settings.JWT_AUDIENCE
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Verified claims of a token, or None if it is invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM], **_claims_options())
    except JWTError:
        return None
