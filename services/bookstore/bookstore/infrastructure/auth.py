from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from fastapi import Request
from pydantic import BaseModel
from bookstore.core_settings import get_settings

class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None

def create_access_token(subject: str, email: Optional[str] = None, expires_minutes: int = 60) -> str:
    """Mint a token shaped like the auth provider's; used by tests and local tooling."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "email": email,
        "role": "authenticated",
        "aud": "authenticated",
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_access_token(token: str) -> Optional[AuthUser]:
    settings = get_settings()
    try:
        # Provider tokens carry varying audiences; only the signature and expiry matter here
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"verify_aud": False},
        )
    except jwt.PyJWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return AuthUser(id=subject, email=payload.get("email"), role=payload.get("role"))

def user_id_from_request(request: Request) -> Optional[str]:
    """User id of a valid bearer token on ``request``, for the log trace context."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    user = decode_access_token(token.strip())
    return user.id if user else None
