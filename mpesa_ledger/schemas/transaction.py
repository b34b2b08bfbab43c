from datetime import datetime
from decimal import Decimal
from typing import List
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mpesa_ledger.core.constants import TransactionType


# -------------------------- BASE SCHEMAS -----------------------------------

class TransactionBase(BaseModel):
    type: TransactionType = Field(..., description="sent, received, payment, withdrawal, airtime or unknown")
    amount: Decimal = Field(..., ge=0, description="Money moved, in whole + fractional shillings")
    recipient: str = Field("", description="Counterparty when money flows out")
    sender: str = Field("", description="Counterparty when money flows in")
    balance: Decimal = Field(Decimal("0"), description="Balance stated by the message after the transaction")
    transaction_code: str = Field("", description="Provider confirmation code")
    date: datetime = Field(..., description="Provider stated time, else the SMS receipt time")
    raw_message: str = Field(..., description="Original SMS body")
    category: str = Field("Other", min_length=1)

    @model_validator(mode="after")
    def check_direction(self):
        if self.type == TransactionType.RECEIVED:
            if not self.sender or self.recipient:
                raise ValueError("received transactions carry a sender and no recipient")
        elif self.type != TransactionType.UNKNOWN:
            if not self.recipient or self.sender:
                raise ValueError(f"{self.type.value} transactions carry a recipient and no sender")
        return self

    @property
    def counterparty(self) -> str:
        return self.sender if self.type == TransactionType.RECEIVED else self.recipient


class ParsedTransaction(TransactionBase):
    """Parser output, before the native message id is attached."""
    pass


# -------------------------- CREATE SCHEMAS ---------------------------------

class TransactionCreate(TransactionBase):
    id: str = Field(..., min_length=1, max_length=64, description="Native SMS id")

    @classmethod
    def from_parsed(cls, native_id: str, parsed: ParsedTransaction) -> "TransactionCreate":
        return cls(id=native_id, **parsed.model_dump())


class CategoryUpdate(BaseModel):
    category: str = Field(..., min_length=1, max_length=50)

    @field_validator("category")
    @classmethod
    def strip_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category must not be blank")
        return value


# -------------------------- RESPONSE SCHEMAS -------------------------------

class TransactionRead(TransactionBase):
    id: str

    model_config = ConfigDict(from_attributes=True)


class TransactionPage(BaseModel):
    transactions: List[TransactionRead]
    total: int
    limit: int
    offset: int
    has_more: bool
