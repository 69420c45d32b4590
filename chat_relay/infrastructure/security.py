# chat_relay/infrastructure/security.py
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError
from passlib.context import CryptContext

from chat_relay.config import AppConfig


class SecurityService:
    """Password hashing plus the access/refresh JWT pair.

    Access and refresh tokens are signed with different keys, so one can never
    be replayed as the other.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def _encode(self, data: dict, key: str, lifetime: timedelta) -> Tuple[str, datetime]:
        expires_at = datetime.now(timezone.utc) + lifetime
        # the nonce keeps two logins within the same second distinct
        claims = {**data, "nonce": secrets.token_hex(8), "exp": expires_at}
        return jwt.encode(claims, key, algorithm=self.config.ALGORITHM), expires_at

    def _subject(self, token: str, key: str) -> str:
        claims = jwt.decode(token, key, algorithms=[self.config.ALGORITHM])
        subject = claims.get("sub")
        if subject is None:
            raise InvalidTokenError("Token has no subject")
        return subject

    def create_access_token(
        self, data: dict, expires_delta: Optional[timedelta] = None
    ) -> Tuple[str, datetime]:
        lifetime = expires_delta or timedelta(
            minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES
        )
        return self._encode(data, self.config.SECRET_KEY, lifetime)

    def create_refresh_token(self, data: dict) -> Tuple[str, datetime]:
        lifetime = timedelta(days=self.config.REFRESH_TOKEN_EXPIRE_DAYS)
        return self._encode(data, self.config.REFRESH_SECRET_KEY, lifetime)

    def read_access_token(self, token: str) -> str:
        """Return the token subject, raising PyJWT errors on failure.

        Unlike ``decode_access_token`` this keeps the failure reason, which the
        socket handshake reports back to the client.
        """
        return self._subject(token, self.config.SECRET_KEY)

    def decode_access_token(self, token: str) -> Optional[str]:
        try:
            return self.read_access_token(token)
        except (ExpiredSignatureError, InvalidTokenError):
            return None

    def decode_refresh_token(self, token: str) -> Optional[str]:
        try:
            return self._subject(token, self.config.REFRESH_SECRET_KEY)
        except (ExpiredSignatureError, InvalidTokenError):
            return None
