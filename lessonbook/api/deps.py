from typing import Annotated
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from ..config import get_settings
from ..core.clock import Clock, system_clock
from ..core.security import Identity, Unauthenticated, verify_token
from ..db.store import TransactionalStore, get_store


bearer_scheme = HTTPBearer(auto_error=False)


def get_clock() -> Clock:
    return system_clock


def get_current_account(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        return verify_token(credentials.credentials)
    except Unauthenticated as exc:
        raise credentials_exception from exc


def verify_scheduler_token(
    x_scheduler_token: Annotated[str | None, Header(alias="X-Scheduler-Token")] = None,
) -> None:
    settings = get_settings()
    if not settings.scheduler_api_token or x_scheduler_token != settings.scheduler_api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid scheduler token")


StoreDep = Annotated[TransactionalStore, Depends(get_store)]
ClockDep = Annotated[Clock, Depends(get_clock)]
IdentityDep = Annotated[Identity, Depends(get_current_account)]
