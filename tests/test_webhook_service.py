"""Tests for payment webhook verification and matching."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from installment_recon.core.exceptions import VerificationError
from installment_recon.models.payment_invoice import PaymentInvoice
from installment_recon.models.reconciliation import MatchConfidence, ReconciliationLog
from installment_recon.models.transaction import Transaction
from installment_recon.services.webhook_service import (
    Confirmed,
    Pending,
    PaymentWebhookMatcher,
    Unmatched,
    VerifiedPayment,
    phone_key,
)


@pytest.fixture
def matcher(db_session, gateway):
    return PaymentWebhookMatcher(db=db_session, gateway=gateway, paid_statuses=["CAPTURED", "PAID"], phone_digits=8)


def deliver(matcher, gateway, charge):
    gateway.fetch.return_value = charge
    return matcher.handle({"id": charge["id"], "status": "FORGED", "amount": 999999})


class TestPhoneKey:
    def test_strips_non_digits_and_keeps_last_eight(self):
        assert phone_key("+965 9876-5432") == "98765432"
        assert phone_key("00965 98765432") == "98765432"

    def test_short_numbers_are_ignored(self):
        assert phone_key("12345") is None
        assert phone_key(None) is None


class TestVerifiedPayment:
    def test_reads_order_reference_when_no_transaction_reference(self, tap_charge):
        charge = tap_charge()
        charge["reference"] = {"order": "ORD-1"}
        payment = VerifiedPayment.from_gateway("chg_1", charge)
        assert payment.reference == "ORD-1"
        assert payment.payer_name == "Ahmad Saleh"
        assert payment.amount == Decimal("100.5")

    def test_paid_status(self, tap_charge):
        assert VerifiedPayment.from_gateway("chg_1", tap_charge(status="CAPTURED")).is_paid(["CAPTURED"])
        assert not VerifiedPayment.from_gateway("chg_1", tap_charge(status="INITIATED")).is_paid(["CAPTURED"])


    @pytest.mark.parametrize("field, value", [
        ("reference", "ORD-1"),
        ("customer", "Ahmad"),
        ("metadata", 42),
    ])
    def test_scalar_in_place_of_object_is_ignored(self, tap_charge, field, value):
        charge = tap_charge(reference="S-1", phone="98765432")
        charge[field] = value
        payment = VerifiedPayment.from_gateway("chg_1", charge)
        assert payment.status == "CAPTURED"
        assert payment.metadata_customer_id is None

    def test_scalar_phone_is_ignored(self, tap_charge):
        charge = tap_charge(reference="S-1")
        charge["customer"]["phone"] = "98765432"
        payment = VerifiedPayment.from_gateway("chg_1", charge)
        assert payment.payer_phone == ""
        assert payment.reference == "S-1"

    def test_scalar_customer_is_unmatched_not_raised(self, db_session, matcher, gateway, tap_charge):
        charge = tap_charge()
        charge["customer"] = "Ahmad"
        outcome = deliver(matcher, gateway, charge)
        assert isinstance(outcome.match, Unmatched)
        assert db_session.query(ReconciliationLog).count() == 1


class TestMatching:
    def test_reference_match_is_confirmed_and_balance_untouched(
        self, db_session, matcher, gateway, make_customer, make_transaction, tap_charge
    ):
        customer = make_customer("10")
        transaction = make_transaction(customer, sequence_number="000123", remaining_balance="500")

        outcome = deliver(matcher, gateway, tap_charge(reference="000123", amount=100))

        assert outcome.match == Confirmed(customer_id=customer.id, transaction_id=transaction.id)
        log = db_session.query(ReconciliationLog).one()
        assert log.status == MatchConfidence.CONFIRMED
        assert log.matched_transaction_id == transaction.id
        assert log.matched_customer_id == customer.id
        db_session.expire_all()
        assert db_session.get(Transaction, transaction.id).remaining_balance == Decimal("500")

    def test_verification_uses_gateway_record_not_inbound_body(self, db_session, matcher, gateway, tap_charge):
        outcome = deliver(matcher, gateway, tap_charge(status="CAPTURED", amount=25))
        gateway.fetch.assert_called_once_with("chg_TS01")
        assert outcome.payment.status == "CAPTURED"
        assert db_session.query(ReconciliationLog).one().amount == Decimal("25")

    def test_phone_match_binds_single_open_transaction(
        self, matcher, gateway, make_customer, make_transaction, tap_charge
    ):
        customer = make_customer("11", mobile_number="+965 9876 5432")
        make_transaction(customer, sequence_number="T-1", remaining_balance="0")
        open_transaction = make_transaction(customer, sequence_number="T-2", remaining_balance="300")

        outcome = deliver(matcher, gateway, tap_charge(reference="UNKNOWN", phone="98765432"))

        assert outcome.match == Pending(customer_id=customer.id, transaction_id=open_transaction.id)
        assert outcome.match.confidence == MatchConfidence.PENDING

    def test_phone_match_with_several_open_transactions_binds_customer_only(
        self, matcher, gateway, make_customer, make_transaction, tap_charge
    ):
        customer = make_customer("12", mobile_number="98765432")
        make_transaction(customer, sequence_number="T-1")
        make_transaction(customer, sequence_number="T-2")

        outcome = deliver(matcher, gateway, tap_charge(phone="0096598765432"))

        assert outcome.match == Pending(customer_id=customer.id, transaction_id=None)

    def test_phone_match_on_alternate_phone(self, matcher, gateway, make_customer, tap_charge):
        customer = make_customer("13", mobile_number="11112222", alternate_phone="5555-6666")
        outcome = deliver(matcher, gateway, tap_charge(phone="55556666"))
        assert outcome.match.customer_id == customer.id

    def test_phone_shared_by_two_customers_is_unmatched(self, matcher, gateway, make_customer, tap_charge):
        make_customer("14", mobile_number="98765432")
        make_customer("15", mobile_number="+96598765432")
        outcome = deliver(matcher, gateway, tap_charge(phone="98765432"))
        assert outcome.match == Unmatched()

    def test_no_reference_no_phone_is_unmatched(self, db_session, matcher, gateway, tap_charge):
        outcome = deliver(matcher, gateway, tap_charge())
        assert outcome.match.confidence == MatchConfidence.UNMATCHED
        log = db_session.query(ReconciliationLog).one()
        assert log.status == MatchConfidence.UNMATCHED
        assert log.matched_customer_id is None
        assert log.matched_transaction_id is None


class TestIdempotency:
    def test_redelivery_keeps_one_log_row(self, db_session, matcher, gateway, tap_charge):
        charge = tap_charge(charge_id="chg_dup")
        deliver(matcher, gateway, charge)
        deliver(matcher, gateway, charge)

        assert db_session.query(ReconciliationLog).count() == 1
        assert db_session.query(PaymentInvoice).count() == 1

    def test_redelivery_overwrites_with_latest_status(self, db_session, matcher, gateway, tap_charge):
        deliver(matcher, gateway, tap_charge(charge_id="chg_x", status="INITIATED"))
        assert db_session.query(ReconciliationLog).one().processed_at is None

        deliver(matcher, gateway, tap_charge(charge_id="chg_x", status="CAPTURED"))
        log = db_session.query(ReconciliationLog).one()
        assert log.gateway_status == "CAPTURED"
        assert log.processed_at is not None

    def test_mirror_keeps_metadata_ids(self, db_session, matcher, gateway, tap_charge):
        deliver(matcher, gateway, tap_charge(metadata={"customer_id": "c-9", "transaction_id": "t-9"}))
        mirror = db_session.query(PaymentInvoice).one()
        assert mirror.customer_id == "c-9"
        assert mirror.transaction_id == "t-9"
        assert mirror.metadata_payload["id"] == "chg_TS01"


class TestFailures:
    def test_verification_failure_propagates_and_writes_nothing(self, db_session, matcher, gateway):
        gateway.fetch.side_effect = VerificationError("Failed to verify payment with Tap: 404 Not Found")
        with pytest.raises(VerificationError):
            matcher.handle({"id": "chg_missing"})
        assert db_session.query(ReconciliationLog).count() == 0
        assert db_session.query(PaymentInvoice).count() == 0

    @pytest.mark.parametrize("payload", [{}, {"id": ""}, {"id": None}, ["chg_1"]])
    def test_missing_id_is_verification_error(self, matcher, gateway, payload):
        with pytest.raises(VerificationError):
            matcher.handle(payload)
        gateway.fetch.assert_not_called()

    def test_log_write_failure_is_not_raised(self, matcher, gateway, tap_charge):
        with patch("installment_recon.services.webhook_service.upsert", side_effect=SQLAlchemyError("db down")):
            outcome = deliver(matcher, gateway, tap_charge())
        assert outcome.payment.status == "CAPTURED"
