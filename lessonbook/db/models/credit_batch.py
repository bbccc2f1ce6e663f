from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import CheckConstraint, DateTime, Enum, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base
from ...core.clock import as_utc


class CreditBatchStatus(str, PyEnum):
    active = "active"
    expired = "expired"


ALLOWED_BATCH_TRANSITIONS: dict[CreditBatchStatus, frozenset[CreditBatchStatus]] = {
    CreditBatchStatus.active: frozenset({CreditBatchStatus.expired}),
    CreditBatchStatus.expired: frozenset(),
}


class CreditBatch(Base):
    __tablename__ = "credit_batches"
    __table_args__ = (
        Index("ix_credit_batch_ledger", "account_id", "provider_id", "expires_at"),
        CheckConstraint("amount_total > 0", name="ck_credit_batch_total_positive"),
        CheckConstraint("amount_remaining >= 0", name="ck_credit_batch_remaining_non_negative"),
        CheckConstraint(
            "amount_remaining <= amount_total", name="ck_credit_batch_remaining_within_total"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(128), nullable=False)
    amount_total: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    expired_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[CreditBatchStatus] = mapped_column(
        Enum(CreditBatchStatus), default=CreditBatchStatus.active, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def is_expired_at(self, now: datetime) -> bool:
        return self.status == CreditBatchStatus.expired or as_utc(self.expires_at) <= now

    def is_eligible(self, now: datetime) -> bool:
        """Whether the batch still contributes to balance and consumption."""
        return not self.is_expired_at(now) and self.amount_remaining > 0

    def state_at(self, now: datetime) -> str:
        if self.is_expired_at(now):
            return CreditBatchStatus.expired.value
        if self.amount_remaining == 0:
            return "depleted"
        return CreditBatchStatus.active.value

    def mark_expired(self) -> int:
        if CreditBatchStatus.expired not in ALLOWED_BATCH_TRANSITIONS[self.status]:
            raise ValueError(f"Cannot expire a batch in status {self.status.value}")
        forfeited = self.amount_remaining
        self.expired_amount = forfeited
        self.amount_remaining = 0
        self.status = CreditBatchStatus.expired
        return forfeited
