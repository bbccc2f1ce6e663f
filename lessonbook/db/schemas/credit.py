from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..models.credit_batch import CreditBatchStatus


class CreditGrant(BaseModel):
    account_id: str = Field(min_length=1)
    provider_id: str = Field(min_length=1)
    amount: int = Field(gt=0, description="Credits added by the purchase")
    valid_days: int | None = Field(
        default=None,
        gt=0,
        description="Validity in days. Falls back to the configured default when omitted.",
    )
    source_id: str | None = Field(default=None, description="Originating purchase")


class CreditConsume(BaseModel):
    provider_id: str = Field(min_length=1)
    amount: int = Field(default=1, gt=0)


class CreditRestore(BaseModel):
    provider_id: str = Field(min_length=1)
    batch_id: int
    amount: int = Field(default=1, gt=0)


class CreditBatch(BaseModel):
    id: int
    account_id: str
    provider_id: str
    amount_total: int
    amount_remaining: int
    expired_amount: int
    granted_at: datetime
    expires_at: datetime
    source_id: str | None = None
    status: CreditBatchStatus

    class Config:
        from_attributes = True


class BatchDebit(BaseModel):
    batch_id: int
    amount: int
    remaining: int


class ConsumeResult(BaseModel):
    consumed: int
    debits: list[BatchDebit]
    balance: int


class Balance(BaseModel):
    account_id: str
    provider_id: str
    balance: int


class ExpiryJobResult(BaseModel):
    success: bool
    totalExpired: int = 0
    affectedAccounts: int = 0
    failed: int = 0
