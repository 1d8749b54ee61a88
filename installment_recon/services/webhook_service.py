"""
Payment webhook reconciliation.

An inbound gateway event is verified against the gateway, mirrored locally,
matched to a customer/transaction at a confidence tier and logged. Balances
are never touched here: recording a payment needs human approval.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from installment_recon.core.config import settings
from installment_recon.core.database import upsert
from installment_recon.core.exceptions import VerificationError
from installment_recon.core.logging import get_logger
from installment_recon.models.customer import Customer
from installment_recon.models.payment_invoice import PaymentInvoice
from installment_recon.models.reconciliation import MatchConfidence, ReconciliationLog
from installment_recon.models.transaction import Transaction
from installment_recon.services.gateway_client import TapGatewayClient

logger = get_logger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class Confirmed:
    customer_id: str
    transaction_id: str
    confidence: ClassVar[MatchConfidence] = MatchConfidence.CONFIRMED


@dataclass(frozen=True)
class Pending:
    customer_id: str
    transaction_id: Optional[str] = None
    confidence: ClassVar[MatchConfidence] = MatchConfidence.PENDING


@dataclass(frozen=True)
class Unmatched:
    customer_id: ClassVar[None] = None
    transaction_id: ClassVar[None] = None
    confidence: ClassVar[MatchConfidence] = MatchConfidence.UNMATCHED


MatchOutcome = Union[Confirmed, Pending, Unmatched]


def _decimal_or_none(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    """Nested gateway object, empty when absent or not an object"""
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def _text_or_none(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (Mapping, list)):
        return None
    return str(value)


def phone_key(phone: Optional[str], digits: int = 8) -> Optional[str]:
    """Last `digits` digits of a phone number, None when it is too short"""
    if not phone:
        return None
    cleaned = _NON_DIGITS.sub("", str(phone))
    if len(cleaned) < digits:
        return None
    return cleaned[-digits:]


@dataclass(frozen=True)
class VerifiedPayment:
    gateway_id: str
    status: Optional[str]
    amount: Optional[Decimal]
    currency: Optional[str]
    reference: Optional[str]
    payer_name: str
    payer_email: str
    payer_phone: str
    metadata_customer_id: Optional[str]
    metadata_transaction_id: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_gateway(cls, gateway_id: str, data: Mapping[str, Any]) -> "VerifiedPayment":
        reference = _section(data, "reference")
        customer = _section(data, "customer")
        phone = _section(customer, "phone")
        metadata = _section(data, "metadata")

        full_name = f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip()
        merchant_reference = reference.get("transaction") or reference.get("order")

        return cls(
            gateway_id=gateway_id,
            status=_text_or_none(data.get("status")),
            amount=_decimal_or_none(data.get("amount")),
            currency=_text_or_none(data.get("currency")),
            reference=str(merchant_reference).strip() if merchant_reference else None,
            payer_name=full_name,
            payer_email=_text_or_none(customer.get("email")) or "",
            payer_phone=str(phone.get("number") or ""),
            metadata_customer_id=_text_or_none(metadata.get("customer_id")),
            metadata_transaction_id=_text_or_none(metadata.get("transaction_id")),
            payload=dict(data)
        )

    def is_paid(self, paid_statuses: List[str]) -> bool:
        return (self.status or "").upper() in {status.upper() for status in paid_statuses}


@dataclass(frozen=True)
class WebhookOutcome:
    payment: VerifiedPayment
    match: MatchOutcome


class PaymentWebhookMatcher:
    def __init__(
        self,
        db: Session,
        gateway: TapGatewayClient,
        paid_statuses: Optional[List[str]] = None,
        phone_digits: Optional[int] = None
    ):
        self.db = db
        self.gateway = gateway
        self.paid_statuses = paid_statuses or settings.TAP_PAID_STATUSES
        self.phone_digits = phone_digits or settings.PHONE_MATCH_DIGITS

    def handle(self, payload: Any) -> WebhookOutcome:
        """
        Process one delivery. Only verification failures raise; mirror and
        log failures are logged so a verified event is still acknowledged.
        """
        gateway_id = payload.get("id") if isinstance(payload, Mapping) else None
        if not gateway_id or not isinstance(gateway_id, str):
            raise VerificationError("No ID found in payload")

        logger.info(f"Received Tap webhook for {gateway_id}")
        payment = VerifiedPayment.from_gateway(gateway_id, self.gateway.fetch(gateway_id))

        self._mirror(payment)
        match = self.match(payment)
        self._log(payment, match)

        logger.info(
            f"Tap event {gateway_id} ({payment.status}) reconciled as {match.confidence.value}: "
            f"customer={match.customer_id} transaction={match.transaction_id}"
        )
        return WebhookOutcome(payment=payment, match=match)

    def match(self, payment: VerifiedPayment) -> MatchOutcome:
        return (
            self._match_reference(payment)
            or self._match_phone(payment)
            or Unmatched()
        )

    def _match_reference(self, payment: VerifiedPayment) -> Optional[Confirmed]:
        if not payment.reference:
            return None
        transactions = self.db.query(Transaction).filter(
            Transaction.sequence_number == payment.reference
        ).limit(2).all()
        if len(transactions) != 1:
            return None
        return Confirmed(customer_id=transactions[0].customer_id, transaction_id=transactions[0].id)

    def _match_phone(self, payment: VerifiedPayment) -> Optional[Pending]:
        key = phone_key(payment.payer_phone, self.phone_digits)
        if key is None:
            return None

        # Narrow on the trailing digits in SQL, compare normalized numbers here
        pattern = f"%{key[-4:]}%"
        candidates = self.db.query(Customer).filter(
            or_(Customer.mobile_number.like(pattern), Customer.alternate_phone.like(pattern))
        ).all()
        customer_ids = {
            customer.id for customer in candidates
            if key in (phone_key(customer.mobile_number, self.phone_digits),
                       phone_key(customer.alternate_phone, self.phone_digits))
        }
        if len(customer_ids) != 1:
            return None
        customer_id = customer_ids.pop()

        open_transactions = self.db.query(Transaction.id).filter(
            Transaction.customer_id == customer_id,
            Transaction.remaining_balance > 0
        ).limit(2).all()
        transaction_id = open_transactions[0][0] if len(open_transactions) == 1 else None

        return Pending(customer_id=customer_id, transaction_id=transaction_id)

    def _mirror(self, payment: VerifiedPayment) -> None:
        try:
            upsert(self.db, PaymentInvoice, "tap_id", {
                "tap_id": payment.gateway_id,
                "amount": payment.amount,
                "currency": payment.currency,
                "status": payment.status,
                "customer_id": payment.metadata_customer_id,
                "transaction_id": payment.metadata_transaction_id,
                "metadata_payload": payment.payload
            })
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Error updating payment invoice mirror for {payment.gateway_id}")

    def _log(self, payment: VerifiedPayment, match: MatchOutcome) -> None:
        try:
            upsert(self.db, ReconciliationLog, "charge_id", {
                "charge_id": payment.gateway_id,
                "status": match.confidence,
                "gateway_status": payment.status,
                "amount": payment.amount,
                "currency": payment.currency,
                "reference_no": payment.reference,
                "customer_name": payment.payer_name,
                "customer_email": payment.payer_email,
                "customer_phone": payment.payer_phone,
                "matched_customer_id": match.customer_id,
                "matched_transaction_id": match.transaction_id,
                "payload": payment.payload,
                "processed_at": datetime.utcnow() if payment.is_paid(self.paid_statuses) else None
            })
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Error logging Tap webhook {payment.gateway_id}")
