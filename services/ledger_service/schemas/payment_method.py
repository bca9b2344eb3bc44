"""Payment destination schemas.

``details`` is a tagged union keyed by ``method_type``; each tag carries a
fixed field set, so a bank account can never be stored without an IFSC.
"""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from services.ledger_service.models.enums import PaymentMethodType


class BankAccountDetails(BaseModel):
    method_type: Literal["bank_account"] = "bank_account"
    account_number: str = Field(..., min_length=6, max_length=18)
    ifsc: str = Field(..., min_length=11, max_length=11)
    account_holder_name: str = Field(..., min_length=1, max_length=120)

    @field_validator("ifsc")
    @classmethod
    def normalise_ifsc(cls, value: str) -> str:
        value = value.strip().upper()
        if not (value[:4].isalpha() and value[4] == "0"):
            raise ValueError("IFSC must be 4 letters, a zero, then 6 characters")
        return value

    @field_validator("account_number")
    @classmethod
    def digits_only(cls, value: str) -> str:
        if not value.isdigit():
            raise ValueError("Account number must contain digits only")
        return value


class UpiDetails(BaseModel):
    method_type: Literal["upi"] = "upi"
    vpa: str = Field(..., pattern=r"^[A-Za-z0-9._-]{2,256}@[A-Za-z]{2,64}$")


class PaypalDetails(BaseModel):
    method_type: Literal["paypal"] = "paypal"
    email: EmailStr


PaymentDetails = Annotated[
    Union[BankAccountDetails, UpiDetails, PaypalDetails],
    Field(discriminator="method_type"),
]


class PaymentMethodCreate(BaseModel):
    details: PaymentDetails
    fund_account_id: Optional[str] = None
    is_primary: bool = False


class PaymentMethodResponse(BaseModel):
    id: uuid.UUID
    wallet_id: uuid.UUID
    method_type: PaymentMethodType
    details: PaymentDetails
    fund_account_id: Optional[str] = None
    is_primary: bool
    is_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
