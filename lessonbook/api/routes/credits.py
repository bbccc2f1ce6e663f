from fastapi import APIRouter, HTTPException, status
from ...api.deps import ClockDep, IdentityDep, StoreDep
from ...config import get_settings
from ...core.errors import ServiceError, to_http
from ...core.security import Identity
from ...db import schemas
from ...services import credit_service

router = APIRouter(prefix="/credits", tags=["credits"])


def _resolve_account(identity: Identity, account_id: str | None, provider_id: str) -> str:
    # Students act on their own ledger; a studio may act on any of its students
    if account_id is None or account_id == identity.account_id:
        return identity.account_id
    if identity.account_id != provider_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return account_id


@router.post("/grants", response_model=schemas.CreditBatch, status_code=status.HTTP_201_CREATED)
def grant_credits(
    payload: schemas.CreditGrant,
    store: StoreDep,
    clock: ClockDep,
    identity: IdentityDep,
):
    if identity.account_id != payload.provider_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    valid_days = payload.valid_days or get_settings().credit_default_validity_days
    try:
        return credit_service.grant_credits(
            store,
            account_id=payload.account_id,
            provider_id=payload.provider_id,
            amount=payload.amount,
            valid_days=valid_days,
            source_id=payload.source_id,
            clock=clock,
        )
    except ServiceError as exc:
        raise to_http(exc) from exc


@router.get("/balance", response_model=schemas.Balance)
def balance(
    provider_id: str,
    store: StoreDep,
    clock: ClockDep,
    identity: IdentityDep,
    account_id: str | None = None,
):
    account = _resolve_account(identity, account_id, provider_id)
    try:
        value = credit_service.available_balance(store, account, provider_id, now=clock.now())
    except ServiceError as exc:
        raise to_http(exc) from exc
    return schemas.Balance(account_id=account, provider_id=provider_id, balance=value)


@router.get("/batches", response_model=list[schemas.CreditBatch])
def batches(
    provider_id: str,
    store: StoreDep,
    identity: IdentityDep,
    account_id: str | None = None,
):
    account = _resolve_account(identity, account_id, provider_id)
    try:
        return credit_service.list_batches(store, account, provider_id)
    except ServiceError as exc:
        raise to_http(exc) from exc


@router.post("/consume", response_model=schemas.ConsumeResult)
def consume(
    payload: schemas.CreditConsume,
    store: StoreDep,
    clock: ClockDep,
    identity: IdentityDep,
    account_id: str | None = None,
):
    account = _resolve_account(identity, account_id, payload.provider_id)
    try:
        debits = credit_service.consume_credits(
            store,
            account_id=account,
            provider_id=payload.provider_id,
            amount=payload.amount,
            clock=clock,
        )
        remaining = credit_service.available_balance(
            store, account, payload.provider_id, now=clock.now()
        )
    except ServiceError as exc:
        raise to_http(exc) from exc
    return schemas.ConsumeResult(
        consumed=payload.amount,
        debits=[
            schemas.BatchDebit(batch_id=d.batch_id, amount=d.amount, remaining=d.remaining)
            for d in debits
        ],
        balance=remaining,
    )


@router.post("/restore", response_model=schemas.CreditBatch)
def restore(
    payload: schemas.CreditRestore,
    store: StoreDep,
    clock: ClockDep,
    identity: IdentityDep,
    account_id: str | None = None,
):
    account = _resolve_account(identity, account_id, payload.provider_id)
    try:
        return credit_service.restore_credit(
            store,
            account_id=account,
            provider_id=payload.provider_id,
            batch_id=payload.batch_id,
            amount=payload.amount,
            clock=clock,
        )
    except ServiceError as exc:
        raise to_http(exc) from exc
