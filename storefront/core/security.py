from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        # malformed hash in storage
        return False


def create_access_token(subject: str, secret: str, algorithm: str, expires_minutes: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode({"sub": subject, "exp": expire}, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str) -> Optional[str]:
    """
    Decode a JWT and return its 'sub' claim if the signature and expiry are valid, else None.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None
