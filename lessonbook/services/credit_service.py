from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.clock import Clock, as_utc, system_clock
from ..core.errors import (
    AccessDenied,
    InsufficientCredits,
    InvalidState,
    NotFound,
    StoreUnavailable,
    TransactionConflict,
    ValidationError,
)
from ..db import models
from ..db.store import TransactionalStore

logger = logging.getLogger(__name__)

_FIFO_ORDER = (
    models.CreditBatch.expires_at,
    models.CreditBatch.granted_at,
    models.CreditBatch.id,
)


@dataclass(slots=True)
class BatchDebit:
    batch_id: int
    amount: int
    remaining: int


@dataclass(slots=True)
class ExpirySummary:
    total_expired: int = 0
    affected_accounts: int = 0
    failed: int = 0


def _eligible_batches(account_id: str, provider_id: str, now: datetime):
    return (
        select(models.CreditBatch)
        .where(
            models.CreditBatch.account_id == account_id,
            models.CreditBatch.provider_id == provider_id,
            models.CreditBatch.status == models.CreditBatchStatus.active,
            models.CreditBatch.expires_at > now,
            models.CreditBatch.amount_remaining > 0,
        )
        .order_by(*_FIFO_ORDER)
    )


def _in_transaction(store: TransactionalStore, fn: Callable[[Session], Any]) -> Any:
    try:
        return store.run_in_transaction(fn)
    except TransactionConflict as exc:
        raise StoreUnavailable("Credit ledger is busy, try again") from exc


def grant_credits(
    store: TransactionalStore,
    *,
    account_id: str,
    provider_id: str,
    amount: int,
    valid_days: int,
    source_id: str | None = None,
    clock: Clock = system_clock,
) -> models.CreditBatch:
    """Record a new batch of credits; every call creates its own batch."""

    if not account_id or not provider_id:
        raise ValidationError("account_id and provider_id are required")
    if amount <= 0:
        raise ValidationError("amount must be a positive number")
    if valid_days <= 0:
        raise ValidationError("valid_days must be a positive number")
    now = clock.now()

    def _grant(session: Session) -> models.CreditBatch:
        batch = models.CreditBatch(
            account_id=account_id,
            provider_id=provider_id,
            amount_total=amount,
            amount_remaining=amount,
            expired_amount=0,
            granted_at=now,
            expires_at=now + timedelta(days=valid_days),
            source_id=source_id,
            status=models.CreditBatchStatus.active,
            updated_at=now,
        )
        session.add(batch)
        session.flush()
        return batch

    batch = _in_transaction(store, _grant)
    logger.info(
        "Credits granted",
        extra={
            "account_id": account_id,
            "provider_id": provider_id,
            "batch_id": batch.id,
            "amount": amount,
        },
    )
    return batch


def available_balance(
    store: TransactionalStore, account_id: str, provider_id: str, *, now: datetime
) -> int:
    def _sum(session: Session) -> int:
        return session.scalar(
            select(func.coalesce(func.sum(models.CreditBatch.amount_remaining), 0)).where(
                models.CreditBatch.account_id == account_id,
                models.CreditBatch.provider_id == provider_id,
                models.CreditBatch.status == models.CreditBatchStatus.active,
                models.CreditBatch.expires_at > now,
            )
        )

    return int(store.read(_sum) or 0)


def list_batches(
    store: TransactionalStore, account_id: str, provider_id: str
) -> list[models.CreditBatch]:
    def _list(session: Session) -> list[models.CreditBatch]:
        return list(
            session.execute(
                select(models.CreditBatch)
                .where(
                    models.CreditBatch.account_id == account_id,
                    models.CreditBatch.provider_id == provider_id,
                )
                .order_by(*_FIFO_ORDER)
            )
            .scalars()
            .all()
        )

    return store.read(_list)


def consume_credits(
    store: TransactionalStore,
    *,
    account_id: str,
    provider_id: str,
    amount: int,
    clock: Clock = system_clock,
) -> list[BatchDebit]:
    """Spend ``amount`` credits, earliest-expiring batches first.

    The eligible batches are read and written in one transaction. Their
    version counters make a concurrent consumer's commit fail, in which case
    the whole walk is redone against fresh remainders.
    """

    if amount <= 0:
        raise ValidationError("amount must be a positive number")
    now = clock.now()

    def _consume(session: Session) -> list[BatchDebit]:
        batches = session.execute(_eligible_batches(account_id, provider_id, now)).scalars().all()
        available = sum(batch.amount_remaining for batch in batches)
        if available < amount:
            raise InsufficientCredits(
                f"Requested {amount} credits but only {available} available"
            )
        debits: list[BatchDebit] = []
        outstanding = amount
        for batch in batches:
            if outstanding == 0:
                break
            taken = min(batch.amount_remaining, outstanding)
            batch.amount_remaining -= taken
            batch.updated_at = now
            outstanding -= taken
            debits.append(BatchDebit(batch.id, taken, batch.amount_remaining))
        session.flush()
        return debits

    debits = _in_transaction(store, _consume)
    logger.info(
        "Credits consumed",
        extra={
            "account_id": account_id,
            "provider_id": provider_id,
            "amount": amount,
            "batches": [debit.batch_id for debit in debits],
        },
    )
    return debits


def restore_credit(
    store: TransactionalStore,
    *,
    account_id: str,
    provider_id: str,
    batch_id: int,
    amount: int = 1,
    clock: Clock = system_clock,
) -> models.CreditBatch:
    """Give previously consumed credit back to the batch it was taken from."""

    if amount <= 0:
        raise ValidationError("amount must be a positive number")
    now = clock.now()

    def _restore(session: Session) -> models.CreditBatch:
        batch = session.get(models.CreditBatch, batch_id)
        if batch is None:
            raise NotFound("Credit entry not found")
        if batch.account_id != account_id or batch.provider_id != provider_id:
            raise AccessDenied("Credit entry does not belong to this account")
        if batch.is_expired_at(now):
            raise InvalidState("Cannot restore expired credit")
        if batch.amount_remaining + amount > batch.amount_total:
            raise InvalidState("Restore would exceed the granted amount")
        batch.amount_remaining += amount
        batch.updated_at = now
        session.flush()
        return batch

    return _in_transaction(store, _restore)


def _expire_batch(session: Session, batch_id: int, now: datetime) -> tuple[int, tuple[str, str]] | None:
    batch = session.get(models.CreditBatch, batch_id)
    if batch is None or batch.status == models.CreditBatchStatus.expired:
        return None
    if as_utc(batch.expires_at) > now or batch.amount_remaining == 0:
        return None
    forfeited = batch.mark_expired()
    batch.updated_at = now
    session.flush()
    return forfeited, (batch.account_id, batch.provider_id)


def expire_credits(store: TransactionalStore, *, clock: Clock = system_clock) -> ExpirySummary:
    """Forfeit the remainder of every batch past its expiry.

    Each batch is settled in its own transaction. A batch that fails is logged
    and counted, and the sweep moves on; batches already marked expired are
    skipped, so running the sweep again for the same instant changes nothing.
    """

    now = clock.now()
    due_ids = store.read(
        lambda session: list(
            session.execute(
                select(models.CreditBatch.id)
                .where(
                    models.CreditBatch.status == models.CreditBatchStatus.active,
                    models.CreditBatch.expires_at <= now,
                    models.CreditBatch.amount_remaining > 0,
                )
                .order_by(models.CreditBatch.id)
            )
            .scalars()
            .all()
        )
    )

    summary = ExpirySummary()
    affected: set[tuple[str, str]] = set()
    for batch_id in due_ids:
        try:
            result = store.run_in_transaction(
                lambda session, batch_id=batch_id: _expire_batch(session, batch_id, now)
            )
        except Exception:
            summary.failed += 1
            logger.exception("Failed to expire credit batch", extra={"batch_id": batch_id})
            continue
        if result is None:
            continue
        forfeited, ledger = result
        summary.total_expired += forfeited
        affected.add(ledger)

    summary.affected_accounts = len(affected)
    logger.info(
        "Credit expiration finished",
        extra={
            "total_expired": summary.total_expired,
            "affected_accounts": summary.affected_accounts,
            "failed": summary.failed,
            "scanned": len(due_ids),
        },
    )
    return summary


__all__ = [
    "BatchDebit",
    "ExpirySummary",
    "available_balance",
    "consume_credits",
    "expire_credits",
    "grant_credits",
    "list_batches",
    "restore_credit",
]
