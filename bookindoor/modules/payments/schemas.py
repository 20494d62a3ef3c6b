"""Payment schemas."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from uuid import UUID

from pydantic import BaseModel

from bookindoor.core.enums import GatewayOutcomeEnum, PaymentTierEnum
from bookindoor.shared.exceptions import InvalidSignatureException

STATUS_CODE_OUTCOMES = {
    "2": GatewayOutcomeEnum.SUCCESS,
    "0": GatewayOutcomeEnum.PENDING,
    "-1": GatewayOutcomeEnum.CANCELLED,
    "-2": GatewayOutcomeEnum.FAILED,
    "-3": GatewayOutcomeEnum.CHARGEDBACK,
}

SIGNED_FIELDS = ("merchant_id", "order_id", "payhere_amount", "payhere_currency", "status_code", "md5sig")


@dataclass(frozen=True, slots=True)
class PayHereNotification:
    """Form fields of a PayHere ``notify_url`` call, kept as raw strings.

    Signed fields must stay byte-for-byte what the gateway sent, so nothing
    here is normalized before verification.
    """

    merchant_id: str
    order_id: str
    payhere_amount: str
    payhere_currency: str
    status_code: str
    md5sig: str
    payment_id: str = ""
    custom_1: str = ""
    custom_2: str = ""

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> PayHereNotification:
        missing = [name for name in SIGNED_FIELDS if not params.get(name)]
        if missing:
            raise InvalidSignatureException("Payment notification rejected")
        return cls(
            merchant_id=params["merchant_id"],
            order_id=params["order_id"],
            payhere_amount=params["payhere_amount"],
            payhere_currency=params["payhere_currency"],
            status_code=params["status_code"],
            md5sig=params["md5sig"],
            payment_id=params.get("payment_id", ""),
            custom_1=params.get("custom_1", ""),
            custom_2=params.get("custom_2", ""),
        )

    @property
    def outcome(self) -> GatewayOutcomeEnum:
        return STATUS_CODE_OUTCOMES.get(self.status_code.strip(), GatewayOutcomeEnum.UNKNOWN)

    @property
    def tier(self) -> PaymentTierEnum:
        if self.custom_1.strip().lower() == PaymentTierEnum.ADVANCE:
            return PaymentTierEnum.ADVANCE
        return PaymentTierEnum.FULL

    @property
    def payment_group_id(self) -> UUID | None:
        try:
            return UUID(self.order_id)
        except ValueError:
            return None

    @property
    def amount(self) -> Decimal | None:
        try:
            return Decimal(self.payhere_amount)
        except InvalidOperation:
            return None


class CheckoutRequest(BaseModel):
    payment_group_id: UUID
    tier: PaymentTierEnum = PaymentTierEnum.ADVANCE


class CheckoutRead(BaseModel):
    """Fields to post to the PayHere checkout form."""

    checkout_url: str
    merchant_id: str
    order_id: str
    amount: str
    currency: str
    hash: str
    custom_1: PaymentTierEnum
    total_amount: Decimal
    items: str


class NotifyAck(BaseModel):
    success: bool = True
