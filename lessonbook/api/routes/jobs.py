import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from ...api import deps
from ...api.deps import ClockDep, StoreDep
from ...db import schemas
from ...services import credit_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/expire-credits", response_model=schemas.ExpiryJobResult)
def expire_credits(
    store: StoreDep,
    clock: ClockDep,
    _: Annotated[None, Depends(deps.verify_scheduler_token)],
):
    logger.info("Starting scheduled credit expiration job")
    try:
        summary = credit_service.expire_credits(store, clock=clock)
    except Exception as exc:
        # The scheduler always gets an answer
        logger.exception("Error during credit expiration")
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    logger.info(
        "Credit expiration job completed",
        extra={
            "total_expired": summary.total_expired,
            "affected_accounts": summary.affected_accounts,
        },
    )
    return schemas.ExpiryJobResult(
        success=True,
        totalExpired=summary.total_expired,
        affectedAccounts=summary.affected_accounts,
        failed=summary.failed,
    )
