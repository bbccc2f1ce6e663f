from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from ..config import get_settings

ALGORITHM = "HS256"


class Unauthenticated(Exception):
    pass


@dataclass(frozen=True, slots=True)
class Identity:
    account_id: str
    email: str | None = None


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def verify_token(token: str) -> Identity:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise Unauthenticated("Invalid token") from exc
    account_id = payload.get("sub")
    if not account_id:
        raise Unauthenticated("Token has no subject")
    return Identity(account_id=str(account_id), email=payload.get("email"))
