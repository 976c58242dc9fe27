from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from storefront.config import get_settings


def verify_token(authorization: str = Header(...)) -> dict:
    secret = get_settings().jwt_secret
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer" or not secret:
            raise ValueError("unsupported scheme or signing key not configured")
        claims = jwt.decode(token, secret, algorithms=["HS256"])
        if not claims.get("sub"):
            raise ValueError("token has no subject")
        return claims
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")


def require_admin(claims: dict = Depends(verify_token)) -> dict:
    if claims.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return claims
