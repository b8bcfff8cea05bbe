"""
Password hashing and bearer-token issuance
"""
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext

from ..common.config import get_settings
from ..common.logger import get_logger

logger = get_logger("credentials")


@lru_cache()
def _pwd_context() -> CryptContext:
    return CryptContext(schemes=get_settings().password_schemes, deprecated="auto")


def hash_password(raw: str) -> str:
    return _pwd_context().hash(raw)


def verify_password(raw: str, hashed: str) -> bool:
    try:
        return _pwd_context().verify(raw, hashed)
    except (ValueError, TypeError):
        # Unknown or corrupt hash format
        logger.warning("Stored password hash could not be verified")
        return False


class TokenIssuer:
    """Issues and verifies signed bearer tokens carrying a user id"""

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl: timedelta = timedelta(days=30)):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl

    def issue(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        }
        return jwt.encode(payload, key=self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[uuid.UUID]:
        """User id carried by the token, or None if expired, malformed or mis-signed"""
        if not token:
            return None
        try:
            payload = jwt.decode(token, key=self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        try:
            return uuid.UUID(str(payload["sub"]))
        except (KeyError, ValueError):
            return None


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    settings = get_settings()
    return TokenIssuer(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(days=settings.token_ttl_days),
    )
