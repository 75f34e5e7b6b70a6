import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
JWT_ISSUER = os.environ.get("JWT_ISSUER", "autobrief-api")
JWT_AUDIENCE = os.environ.get("JWT_AUDIENCE", "autobrief-web")
JWT_EXPIRE_MINUTES = int(os.environ.get("JWT_EXPIRE_MINUTES", "60"))

# Use pbkdf2_sha256 to sidestep bcrypt backend issues in slim images.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _jwt_secret() -> str:
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET env var is required.")
    if len(secret) < 32:
        raise RuntimeError("JWT_SECRET must be at least 32 characters for HS256.")
    return secret


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(
    user_id: str, email: str, plan: str, expires_minutes: Optional[int] = None
) -> str:
    now = _utcnow()
    expire = now + timedelta(minutes=expires_minutes or JWT_EXPIRE_MINUTES)
    to_encode = {
        "sub": user_id,
        "email": email,
        "plan": plan,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": expire,
        "jti": secrets.token_hex(16),
        "token_type": "access",
    }
    return jwt.encode(to_encode, _jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> Optional[dict]:
    try:
        payload = jwt.decode(
            token,
            _jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
            options={"require": ["exp", "iat", "sub", "jti", "token_type"]},
        )
    except JWTError:
        return None
    if payload.get("token_type") != expected_type:
        return None
    return payload
