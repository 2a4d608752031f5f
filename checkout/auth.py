from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError

from checkout.config import get_settings

VIEW_ORDERS = "view_orders"


def verify_token(authorization: str = Header(None)) -> dict:
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Unsupported authorization scheme")
        return jwt.decode(token, get_settings().jwt_secret, algorithms=["HS256"])
    except (AttributeError, ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")


def require_permission(permission: str):
    def checker(claims: dict = Depends(verify_token)) -> dict:
        if permission not in (claims.get("permissions") or []):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return claims
    return checker


can_view_orders = require_permission(VIEW_ORDERS)
