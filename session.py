"""
Authentication context for the console.

One AuthSession owns the bearer token for the whole process: it is set at
login, cleared at logout, and dropped as soon as the token's `exp` claim has
passed. Network call sites receive the session explicitly and ask it for
headers; they never look the token up themselves.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from errors import MissingCredentialsError

logger = logging.getLogger(__name__)


def token_expiry(token: str) -> Optional[datetime]:
    """Expiry of a JWT, read without verifying the signature (the API verifies it)."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        logger.debug("Token is not a JWT; treating it as non-expiring")
        return None
    exp = claims.get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(int(exp), tz=timezone.utc)


class AuthSession:
    def __init__(self):
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self.role: Optional[str] = None
        self.profile: Dict[str, Any] = {}

    def login(self, token: str, role: Optional[str] = None, profile: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            self._token = token
            self._expires_at = token_expiry(token)
            self.role = role
            self.profile = dict(profile or {})
        logger.info(f"Session opened for role={role}")

    def logout(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = None
            self.role = None
            self.profile = {}
        logger.info("Session closed")

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            if self._token and self._expires_at and self._expires_at <= datetime.now(timezone.utc):
                logger.warning("Session token expired; clearing it")
                self._token = None
                self._expires_at = None
            return self._token

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    def is_authenticated(self) -> bool:
        return self.token is not None

    def admin_id(self) -> str:
        for key in ("_id", "userId", "user_id"):
            if self.profile.get(key):
                return str(self.profile[key])
        return ""

    def bearer_headers(self) -> Dict[str, str]:
        token = self.token
        if not token:
            raise MissingCredentialsError()
        return {"Authorization": f"Bearer {token}"}
